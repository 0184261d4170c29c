"""Decides when an analysis is needed and runs it through the fallback chain."""

import threading
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import structlog

from src.features.orchestrator import store as actions
from src.features.orchestrator.constants import EXCLUDED_PANELS
from src.features.orchestrator.state_machine import (
    ProcessingStateError,
    ProcessingStateMachine,
    ProcessingStep,
)
from src.features.orchestrator.store import AppState, AppStore
from src.features.orchestrator.strategies import AnalysisStrategy, StrategyResult


logger = structlog.get_logger()


class AnalysisOrchestrator:
    """Controller for the preliminary analysis of the current source.

    Triggers arm a fetch; ``run_pending`` performs armed fetches. At most
    one fetch is in flight per orchestrator. Failures end in the
    ``analysis-failed`` step and are never raised to the caller.
    """

    def __init__(
        self,
        store: AppStore,
        strategies: Sequence[AnalysisStrategy],
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the orchestrator and subscribe to store changes.

        Args:
            store: Application store.
            strategies: Strategies tried in order until one succeeds.
            clock: Wall-clock source for the recorded start time.
        """
        self._store = store
        self._strategies = list(strategies)
        self._clock = clock
        self._lock = threading.Lock()
        self._in_flight = False
        self._armed = False
        self._log = logger.bind(component="orchestrator", subcomponent="analysis")
        self._unsubscribe = store.subscribe(self.on_state_change)

    @property
    def armed(self) -> bool:
        """Whether a fetch is waiting to run."""
        return self._armed

    @property
    def in_flight(self) -> bool:
        """Whether a fetch is currently running."""
        return self._in_flight

    def _arm(self, reason: str) -> None:
        with self._lock:
            self._armed = True
        self._log.info("analysis_fetch_armed", reason=reason)

    def mount(self) -> bool:
        """Arm the initial fetch when the workspace first opens.

        Returns:
            True if a fetch was armed.
        """
        state = self._store.state
        if state.initial_analysis is not None:
            return False
        if not state.has_source_inputs:
            return False
        if state.active_panel in EXCLUDED_PANELS:
            self._log.debug("mount_fetch_skipped", panel=state.active_panel)
            return False
        self._arm("mount")
        return True

    def on_state_change(self, state: AppState, previous: AppState) -> None:
        """React to a model or perspective change.

        Clears cached results and arms a new fetch when source inputs are
        present.

        Args:
            state: New state.
            previous: State before the change.
        """
        model_changed = state.selected_model != previous.selected_model
        perspective_changed = state.selected_perspective != previous.selected_perspective
        if not (model_changed or perspective_changed):
            return
        if not state.has_source_inputs:
            return

        self._store.dispatch(actions.clear_analysis_results)
        self._arm("model_changed" if model_changed else "perspective_changed")

    def run_pending(self) -> int:
        """Run armed fetches until none remain.

        Returns:
            Number of fetches performed.
        """
        count = 0
        while self._armed:
            if not self.fetch():
                break
            count += 1
        return count

    def fetch(self) -> bool:
        """Perform one armed fetch.

        Returns:
            True if a fetch ran, False if it was refused.
        """
        state = self._store.state
        with self._lock:
            if not self._armed:
                return False
            if self._in_flight:
                self._log.info("analysis_fetch_refused", reason="in_flight")
                return False
            if not state.has_source_inputs:
                self._log.info("analysis_fetch_refused", reason="missing_source_inputs")
                return False
            self._in_flight = True
            self._armed = False

        try:
            self._run_fetch(state)
        finally:
            with self._lock:
                self._in_flight = False
            self._store.dispatch(actions.set_loading, False)
        return True

    def _run_fetch(self, state: AppState) -> None:
        fetch_id = uuid.uuid4().hex[:8]
        generation = state.request_generation
        machine = ProcessingStateMachine(fetch_id)
        log = self._log.bind(fetch_id=fetch_id, model=state.selected_model)

        def advance(step: ProcessingStep, data: Mapping[str, Any]) -> None:
            machine.transition(step)
            self._store.dispatch(actions.set_processing, step.value, data)

        log.info("analysis_fetch_started", source_length=len(state.source_text))
        self._store.dispatch(actions.set_loading, True)
        self._store.dispatch(
            actions.set_processing,
            ProcessingStep.SELECTING_MODEL.value,
            {
                "start_time": self._clock(),
                "model": state.selected_model,
                "source_length": len(state.source_text),
            },
            reset=True,
        )

        payload = {
            "source": state.source_text,
            "metadata": state.metadata.to_wire() if state.metadata else {},
            "perspective": state.selected_perspective,
            "model": state.selected_model,
        }

        result: StrategyResult | None = None
        try:
            advance(ProcessingStep.ANALYZING_SOURCE, {})
            for strategy in self._strategies:
                result = strategy.execute(payload, advance)
                if result.ok:
                    break
            if result is not None and result.ok:
                advance(ProcessingStep.PROCESSING_RESULTS, {"strategy": result.strategy})
            else:
                advance(ProcessingStep.ANALYSIS_FAILED, {})
        except ProcessingStateError as e:
            log.error("analysis_fetch_aborted", error=str(e))
            self._store.dispatch(
                actions.set_processing, ProcessingStep.ANALYSIS_FAILED.value, {}
            )
            return

        if self._store.state.request_generation != generation:
            log.info(
                "analysis_result_discarded",
                reason="stale_generation",
                fetch_generation=generation,
                current_generation=self._store.state.request_generation,
            )
            return

        if machine.is_failed() or result is None:
            log.error(
                "analysis_fetch_failed",
                error=result.error if result is not None else "no strategies configured",
            )
            return

        self._store.dispatch(actions.set_initial_analysis, result.analysis)
        self._store.dispatch(actions.set_raw_exchange, result.raw_prompt, result.raw_response)
        log.info("analysis_fetch_completed", strategy=result.strategy)

    def close(self) -> None:
        """Stop listening to store changes."""
        self._unsubscribe()
