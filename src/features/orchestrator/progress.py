"""Simulated progress for a running detailed analysis."""

import threading
import time
from collections.abc import Callable
from enum import Enum
from typing import Protocol

import structlog

from src.features.llm.models import get_model_by_id
from src.features.orchestrator import store as actions
from src.features.orchestrator.constants import (
    DETAILED_ANALYSIS_PANEL,
    DETAILED_REQUEST_TYPE,
    PROGRESS_ESTIMATED_TIME_MS,
    PROGRESS_INTERVAL_SECONDS,
)
from src.features.orchestrator.store import AppState, AppStore


logger = structlog.get_logger()


class DetailedPhase(str, Enum):
    """Phases shown while a detailed analysis runs, in display order."""

    PREPARING_DETAILED = "preparing-detailed"
    CONTEXTUAL_ANALYSIS = "contextual-analysis"
    AUTHOR_ANALYSIS = "author-analysis"
    THEMES_EXTRACTION = "themes-extraction"
    EVIDENCE_ANALYSIS = "evidence-analysis"
    SIGNIFICANCE_EVALUATION = "significance-evaluation"
    REFERENCE_COMPILATION = "reference-compilation"


DETAILED_PHASES: tuple[DetailedPhase, ...] = tuple(DetailedPhase)


class IntervalHandle(Protocol):
    """Handle to a repeating callback."""

    def cancel(self) -> None:
        """Stop the callback. Safe to call more than once."""
        ...


class IntervalScheduler(Protocol):
    """Schedules repeating callbacks.

    Allows dependency injection of a deterministic scheduler for testing.
    """

    def schedule(self, interval: float, callback: Callable[[], None]) -> IntervalHandle:
        """Call ``callback`` every ``interval`` seconds until cancelled."""
        ...


class _ThreadInterval:
    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self._stopped = threading.Event()
        self._interval = interval
        self._callback = callback
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            self._callback()

    def cancel(self) -> None:
        self._stopped.set()


class ThreadingIntervalScheduler:
    """Runs each interval on a daemon thread."""

    def schedule(self, interval: float, callback: Callable[[], None]) -> IntervalHandle:
        return _ThreadInterval(interval, callback)


class DetailedAnalysisProgress:
    """Advances the processing step through the detailed phases.

    The ticker runs while the detailed panel is active, loading is true
    and no detailed result exists. The first phase is shown on the first
    tick and each tick replaces the processing details. It stops as soon as any of those stop
    holding, when the phases are exhausted, or on ``close``. It also
    marks the detailed analysis as loaded once a result appears.
    """

    def __init__(
        self,
        store: AppStore,
        scheduler: IntervalScheduler | None = None,
        interval: float = PROGRESS_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the tracker and subscribe to store changes.

        Args:
            store: Application store.
            scheduler: Interval scheduler; threading-based by default.
            interval: Seconds between phases.
            clock: Monotonic clock for elapsed time.
        """
        self._store = store
        self._scheduler = scheduler or ThreadingIntervalScheduler()
        self._interval = interval
        self._clock = clock
        self._lock = threading.Lock()
        self._handle: IntervalHandle | None = None
        self._phase_index = -1
        self._started_at = 0.0
        self._exhausted = False
        self._log = logger.bind(component="orchestrator", subcomponent="progress")
        self._unsubscribe = store.subscribe(self.sync)
        self.sync(store.state, store.state)

    @property
    def running(self) -> bool:
        """Whether the interval is active."""
        return self._handle is not None

    @staticmethod
    def should_run(state: AppState) -> bool:
        """Check whether progress should be shown for a state."""
        return (
            state.active_panel == DETAILED_ANALYSIS_PANEL
            and state.is_loading
            and not state.detailed_analysis
        )

    def sync(self, state: AppState, previous: AppState | None = None) -> None:
        """Start or stop the ticker to match the state.

        Args:
            state: New state.
            previous: State before the change, unused.
        """
        if state.detailed_analysis and not state.detailed_analysis_loaded:
            self._store.dispatch(actions.set_detailed_analysis_loaded, True)

        if not self.should_run(state):
            with self._lock:
                self._exhausted = False
            self._cancel("conditions_ended")
            return

        with self._lock:
            if self._handle is not None or self._exhausted:
                return
            self._phase_index = -1
            self._started_at = self._clock()
            self._handle = self._scheduler.schedule(self._interval, self._tick)

        self._log.info("detailed_progress_started")

    def _tick(self) -> None:
        state = self._store.state
        if not self.should_run(state):
            self._cancel("conditions_ended")
            return

        with self._lock:
            if self._handle is None:
                return
            self._phase_index += 1
            index = self._phase_index
            if index >= len(DETAILED_PHASES):
                self._exhausted = True

        if index >= len(DETAILED_PHASES):
            self._cancel("phases_exhausted")
            return
        self._record_phase(state, index)

    def _record_phase(self, state: AppState, index: int) -> None:
        phase = DETAILED_PHASES[index]
        elapsed_ms = int((self._clock() - self._started_at) * 1000)
        self._store.dispatch(
            actions.set_processing,
            phase.value,
            {
                "model": state.selected_model,
                "source_length": len(state.source_text),
                "provider": get_model_by_id(state.selected_model).provider,
                "time_elapsed": elapsed_ms,
                "estimated_time": PROGRESS_ESTIMATED_TIME_MS,
                "step": index + 1,
                "total_steps": len(DETAILED_PHASES),
                "request_type": DETAILED_REQUEST_TYPE,
            },
            reset=True,
        )

    def _cancel(self, reason: str) -> None:
        with self._lock:
            handle = self._handle
            self._handle = None
        if handle is not None:
            handle.cancel()
            self._log.info("detailed_progress_stopped", reason=reason)

    def close(self) -> None:
        """Cancel the interval and stop listening to the store."""
        self._unsubscribe()
        self._cancel("closed")
