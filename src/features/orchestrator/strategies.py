"""Endpoint strategies folded over by the orchestrator."""

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import structlog
from src.data_model import AnalysisResult
from src.features.orchestrator.constants import (
    FALLBACK_ANALYSIS_PATH,
    PRIMARY_ANALYSIS_PATH,
)
from src.features.orchestrator.errors import AnalysisApiError
from src.features.orchestrator.state_machine import ProcessingStep
from src.features.orchestrator.transport import AnalysisApiClient


logger = structlog.get_logger()

# Advances the processing step, merging the given details.
StepCallback = Callable[[ProcessingStep, Mapping[str, Any]], None]


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of one strategy.

    Attributes:
        strategy: Name of the strategy that produced the result.
        analysis: Parsed result, None on failure.
        raw_prompt: Prompt reported by the endpoint.
        raw_response: Raw model output reported by the endpoint.
        error: Failure description, None on success.
    """

    strategy: str
    analysis: AnalysisResult | None = None
    raw_prompt: str | None = None
    raw_response: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Check whether the strategy produced a result."""
        return self.analysis is not None and self.error is None

    @classmethod
    def failure(cls, strategy: str, error: str) -> "StrategyResult":
        return cls(strategy=strategy, error=error)


class AnalysisStrategy(Protocol):
    """One way of obtaining an analysis."""

    name: str

    def execute(self, payload: dict[str, Any], advance: StepCallback) -> StrategyResult:
        """Run the strategy.

        Args:
            payload: Wire body ``{source, metadata, perspective, model}``.
            advance: Callback used to report processing steps.

        Returns:
            StrategyResult; failures are returned, not raised.
        """
        ...


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _analysis_from(data: Mapping[str, Any]) -> AnalysisResult:
    raw_analysis = data.get("analysis")
    return AnalysisResult.with_defaults(
        raw_analysis if isinstance(raw_analysis, Mapping) else None
    )


class PrimaryEndpointStrategy:
    """Preliminary analysis via ``/api/initial-analysis``."""

    name = "primary"

    def __init__(self, client: AnalysisApiClient, path: str = PRIMARY_ANALYSIS_PATH) -> None:
        self._client = client
        self._path = path
        self._log = logger.bind(component="orchestrator", subcomponent="primary_strategy")

    def execute(self, payload: dict[str, Any], advance: StepCallback) -> StrategyResult:
        advance(ProcessingStep.BUILDING_PROMPT, {})
        advance(ProcessingStep.SENDING_REQUEST, {})
        start = time.perf_counter()

        try:
            data = self._client.post_json(self._path, payload)
        except AnalysisApiError as e:
            self._log.warning(
                "primary_endpoint_failed", status_code=e.status_code, error=str(e)
            )
            return StrategyResult.failure(self.name, str(e))

        advance(
            ProcessingStep.RECEIVING_RESPONSE,
            {
                "truncated_length": data.get("contentLength"),
                "provider": data.get("provider"),
                "time": round(time.perf_counter() - start, 3),
            },
        )
        analysis = _analysis_from(data)
        return StrategyResult(
            strategy=self.name,
            analysis=analysis,
            raw_prompt=_optional_str(data.get("rawPrompt")),
            raw_response=_optional_str(data.get("rawResponse")),
        )


class FallbackEndpointStrategy:
    """JSON-format analysis via ``/api/analysis``.

    Missing summary, analysis or follow-up questions are replaced with
    fixed defaults, so any 2xx response yields a result.
    """

    name = "fallback"

    def __init__(self, client: AnalysisApiClient, path: str = FALLBACK_ANALYSIS_PATH) -> None:
        self._client = client
        self._path = path
        self._log = logger.bind(component="orchestrator", subcomponent="fallback_strategy")

    def execute(self, payload: dict[str, Any], advance: StepCallback) -> StrategyResult:
        advance(ProcessingStep.TRYING_FALLBACK_ENDPOINT, {})

        try:
            data = self._client.post_json(self._path, payload)
        except AnalysisApiError as e:
            self._log.error(
                "fallback_endpoint_failed", status_code=e.status_code, error=str(e)
            )
            return StrategyResult.failure(self.name, str(e))

        advance(ProcessingStep.PROCESSING_FALLBACK_RESPONSE, {})
        analysis = _analysis_from(data)
        return StrategyResult(
            strategy=self.name,
            analysis=analysis,
            raw_prompt=_optional_str(data.get("rawPrompt")),
            raw_response=_optional_str(data.get("rawResponse")),
        )


def default_strategies(client: AnalysisApiClient) -> list[AnalysisStrategy]:
    """Primary endpoint first, then the fallback endpoint."""
    return [PrimaryEndpointStrategy(client), FallbackEndpointStrategy(client)]
