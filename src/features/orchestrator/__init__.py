"""Client-side analysis orchestration: state, fallback chain and progress."""

from src.features.orchestrator.errors import AnalysisApiError
from src.features.orchestrator.orchestrator import AnalysisOrchestrator
from src.features.orchestrator.progress import (
    DetailedAnalysisProgress,
    IntervalScheduler,
    ThreadingIntervalScheduler,
)
from src.features.orchestrator.state_machine import (
    ProcessingStateError,
    ProcessingStateMachine,
    ProcessingStep,
)
from src.features.orchestrator.store import AppState, AppStore
from src.features.orchestrator.strategies import (
    FallbackEndpointStrategy,
    PrimaryEndpointStrategy,
    StrategyResult,
    default_strategies,
)
from src.features.orchestrator.transport import AnalysisApiClient


__all__ = [
    "AnalysisApiClient",
    "AnalysisApiError",
    "AnalysisOrchestrator",
    "AppState",
    "AppStore",
    "DetailedAnalysisProgress",
    "FallbackEndpointStrategy",
    "IntervalScheduler",
    "PrimaryEndpointStrategy",
    "ProcessingStateError",
    "ProcessingStateMachine",
    "ProcessingStep",
    "StrategyResult",
    "ThreadingIntervalScheduler",
    "default_strategies",
]
