"""Gemini API client using API key authentication."""

import random
import time
from http import HTTPStatus

import httpx
import structlog

from src.features.llm.errors import LlmApiError


logger = structlog.get_logger()

_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0
_RETRYABLE_STATUS_CODES = {HTTPStatus.TOO_MANY_REQUESTS, HTTPStatus.SERVICE_UNAVAILABLE}


class GeminiApiKeyClient:
    """Client for the Gemini ``generateContent`` REST endpoint.

    Uses the ``generativelanguage.googleapis.com`` endpoint with an
    ``x-goog-api-key`` header.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash-lite",
        timeout: float = 60.0,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Google AI Studio API key.
            model: Gemini model identifier.
            timeout: Per-request timeout in seconds.
        """
        self._api_key = api_key
        self.model = model
        self._timeout = timeout
        self._log = logger.bind(component="llm", subcomponent="gemini")

    def _build_request_body(
        self,
        prompt: str,
        system_instruction: str | None,
        temperature: float | None,
        max_tokens: int | None,
        json_output: bool,
    ) -> dict[str, object]:
        """Build the generateContent request body."""
        request_body: dict[str, object] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if system_instruction:
            request_body["systemInstruction"] = {
                "parts": [{"text": system_instruction}]
            }

        generation_config: dict[str, object] = {}
        if temperature is not None:
            generation_config["temperature"] = temperature
        if max_tokens is not None:
            generation_config["maxOutputTokens"] = max_tokens
        if json_output:
            generation_config["responseMimeType"] = "application/json"
        if generation_config:
            request_body["generationConfig"] = generation_config

        return request_body

    def generate_content(
        self,
        prompt: str,
        system_instruction: str | None = None,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
    ) -> str:
        """Send a generate content request to the Gemini API.

        Retries with exponential backoff on 429/503 responses.

        Args:
            prompt: User prompt text.
            system_instruction: Optional system instruction.
            temperature: Sampling temperature.
            max_tokens: Maximum output tokens.
            json_output: Request an ``application/json`` response.

        Returns:
            Generated text from the model response.

        Raises:
            LlmApiError: If the API call fails after all retries.
        """
        url = f"{_BASE_URL}/{self.model}:generateContent"
        request_body = self._build_request_body(
            prompt, system_instruction, temperature, max_tokens, json_output
        )

        last_exc: LlmApiError | None = None

        for attempt in range(_MAX_RETRIES + 1):
            try:
                response = httpx.post(
                    url,
                    headers={
                        "x-goog-api-key": self._api_key,
                        "Content-Type": "application/json",
                    },
                    json=request_body,
                    timeout=self._timeout,
                )
            except httpx.HTTPError as exc:
                msg = f"Gemini API request failed: {exc}"
                raise LlmApiError(msg) from exc

            if response.status_code == HTTPStatus.OK:
                break

            status = response.status_code
            if status in _RETRYABLE_STATUS_CODES and attempt < _MAX_RETRIES:
                delay = _RETRY_BASE_DELAY * (2**attempt) + random.uniform(0, 1)  # noqa: S311
                self._log.warning(
                    "gemini_retryable_error",
                    status=status,
                    attempt=attempt + 1,
                    retry_delay=round(delay, 1),
                )
                time.sleep(delay)
                last_exc = LlmApiError(
                    f"Gemini API returned {status}",
                    status_code=status,
                )
                continue

            msg = f"Gemini API returned {status}"
            raise LlmApiError(msg, status_code=status)
        else:
            raise last_exc or LlmApiError("All retries exhausted")

        return self._extract_text(response)

    @staticmethod
    def _extract_text(response: httpx.Response) -> str:
        """Extract generated text from the API response.

        Raises:
            LlmApiError: If the response is missing expected fields.
        """
        data = response.json()
        candidates = data.get("candidates", [])
        if not candidates:
            msg = "No candidates in Gemini API response"
            raise LlmApiError(msg)

        parts = candidates[0].get("content", {}).get("parts", [])
        if not parts:
            msg = "No parts in first candidate"
            raise LlmApiError(msg)

        text: str = "".join(str(part.get("text", "")) for part in parts)
        if not text:
            msg = "Empty text in response"
            raise LlmApiError(msg)

        return text
