"""Application state and the pure actions that produce new states."""

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

import structlog

from src.data_model import AnalysisResult, DocumentMetadata
from src.features.llm.models import DEFAULT_MODEL_ID
from src.features.orchestrator.constants import DEFAULT_PANEL


logger = structlog.get_logger()


@dataclass(frozen=True)
class AppState:
    """Snapshot of the analysis workspace.

    Attributes:
        source_text: Primary source text.
        metadata: Metadata describing the source.
        selected_model: Registry id of the selected model.
        selected_perspective: Interpretive lens, empty for none.
        active_panel: Panel currently shown.
        is_loading: Whether a request is running.
        initial_analysis: Result of the preliminary analysis.
        detailed_analysis: Text of the detailed analysis.
        detailed_analysis_loaded: Whether the detailed analysis arrived.
        raw_prompt: Prompt sent for the last analysis.
        raw_response: Raw model output for the last analysis.
        processing_step: Current processing step value.
        processing_data: Free-form progress details.
        request_generation: Bumped whenever model or perspective changes.
    """

    source_text: str = ""
    metadata: DocumentMetadata | None = None
    selected_model: str = DEFAULT_MODEL_ID
    selected_perspective: str = ""
    active_panel: str = DEFAULT_PANEL
    is_loading: bool = False
    initial_analysis: AnalysisResult | None = None
    detailed_analysis: str | None = None
    detailed_analysis_loaded: bool = False
    raw_prompt: str | None = None
    raw_response: str | None = None
    processing_step: str | None = None
    processing_data: Mapping[str, Any] = field(default_factory=dict)
    request_generation: int = 0

    @property
    def has_source_inputs(self) -> bool:
        """Check whether both source text and metadata are present."""
        return bool(self.source_text) and (
            self.metadata is not None and not self.metadata.is_empty()
        )


Action = Callable[..., AppState]
Listener = Callable[[AppState, AppState], None]


def set_source_text(state: AppState, source_text: str) -> AppState:
    return replace(state, source_text=source_text)


def set_metadata(state: AppState, metadata: DocumentMetadata | None) -> AppState:
    return replace(state, metadata=metadata)


def select_model(state: AppState, model: str) -> AppState:
    """Select a model, invalidating in-flight results when it changes."""
    if model == state.selected_model:
        return state
    return replace(
        state,
        selected_model=model,
        request_generation=state.request_generation + 1,
    )


def select_perspective(state: AppState, perspective: str) -> AppState:
    """Select a perspective, invalidating in-flight results when it changes."""
    if perspective == state.selected_perspective:
        return state
    return replace(
        state,
        selected_perspective=perspective,
        request_generation=state.request_generation + 1,
    )


def set_active_panel(state: AppState, panel: str) -> AppState:
    return replace(state, active_panel=panel)


def set_loading(state: AppState, is_loading: bool) -> AppState:
    return replace(state, is_loading=is_loading)


def set_initial_analysis(state: AppState, analysis: AnalysisResult | None) -> AppState:
    return replace(state, initial_analysis=analysis)


def set_detailed_analysis(state: AppState, detailed_analysis: str | None) -> AppState:
    return replace(state, detailed_analysis=detailed_analysis)


def set_detailed_analysis_loaded(state: AppState, loaded: bool) -> AppState:
    return replace(state, detailed_analysis_loaded=loaded)


def set_raw_exchange(
    state: AppState, raw_prompt: str | None, raw_response: str | None
) -> AppState:
    return replace(state, raw_prompt=raw_prompt, raw_response=raw_response)


def clear_analysis_results(state: AppState) -> AppState:
    """Drop cached initial and detailed results."""
    return replace(
        state,
        initial_analysis=None,
        detailed_analysis=None,
        detailed_analysis_loaded=False,
    )


def set_processing(
    state: AppState,
    step: str,
    data: Mapping[str, Any] | None = None,
    *,
    reset: bool = False,
) -> AppState:
    """Record a processing step.

    Args:
        state: Current state.
        step: New step value.
        data: Details merged into the processing data.
        reset: Replace the processing data instead of merging into it.

    Returns:
        New state.
    """
    base: dict[str, Any] = {} if reset else dict(state.processing_data)
    base.update(data or {})
    return replace(state, processing_step=step, processing_data=base)


class AppStore:
    """Holds the current AppState and notifies subscribers of changes.

    Actions are applied under a lock; listeners are called outside it
    with ``(new_state, previous_state)`` and may dispatch further
    actions.
    """

    def __init__(self, initial: AppState | None = None) -> None:
        self._state = initial or AppState()
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []
        self._log = logger.bind(component="orchestrator", subcomponent="store")

    @property
    def state(self) -> AppState:
        """Get the current state."""
        return self._state

    def dispatch(self, action: Action, *args: Any, **kwargs: Any) -> AppState:
        """Apply an action and notify listeners if the state changed.

        Args:
            action: Pure function mapping the current state to a new one.
            *args: Positional arguments for the action.
            **kwargs: Keyword arguments for the action.

        Returns:
            The state after the action.
        """
        with self._lock:
            previous = self._state
            new_state = action(previous, *args, **kwargs)
            self._state = new_state
            listeners = list(self._listeners)

        if new_state is previous:
            return new_state

        self._log.debug("action_applied", action=action.__name__)
        for listener in listeners:
            listener(new_state, previous)
        return new_state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener.

        Args:
            listener: Called with ``(new_state, previous_state)``.

        Returns:
            Function that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe
