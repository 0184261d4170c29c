"""HTTP transport for the analysis endpoints."""

import time
from typing import Any

import httpx
import structlog

from src.features.orchestrator.constants import HTTP_STATUS_OK_MAX, HTTP_STATUS_OK_MIN
from src.features.orchestrator.errors import AnalysisApiError


logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 120.0


class AnalysisApiClient:
    """JSON POST client for the SourceLens API.

    Wraps an ``httpx.Client`` bound to the API base URL. Every failure
    mode (transport error, non-2xx status, undecodable body) surfaces as
    AnalysisApiError so strategies have one exception to handle.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API root, e.g. ``http://127.0.0.1:5000``.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport, used to route requests
                in-process.
        """
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._log = logger.bind(component="orchestrator", subcomponent="transport")

    def post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON payload and decode the JSON object response.

        Args:
            path: Endpoint path relative to the base URL.
            payload: JSON-compatible request body.

        Returns:
            Decoded response object.

        Raises:
            AnalysisApiError: On transport failure, non-2xx status or a
                body that is not a JSON object.
        """
        start = time.perf_counter()
        try:
            response = self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            self._log.warning("api_transport_error", path=path, error=str(e))
            msg = f"Request to {path} failed: {e}"
            raise AnalysisApiError(msg) from e

        duration_ms = (time.perf_counter() - start) * 1000
        self._log.info(
            "api_response",
            path=path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 1),
        )

        if not HTTP_STATUS_OK_MIN <= response.status_code < HTTP_STATUS_OK_MAX:
            msg = f"{path} returned HTTP {response.status_code}: {response.text[:200]}"
            raise AnalysisApiError(msg, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            msg = f"{path} returned a non-JSON body"
            raise AnalysisApiError(msg, status_code=response.status_code) from e

        if not isinstance(data, dict):
            msg = f"{path} returned {type(data).__name__}, expected an object"
            raise AnalysisApiError(msg, status_code=response.status_code)
        return data

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> "AnalysisApiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
