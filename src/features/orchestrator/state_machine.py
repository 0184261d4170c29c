"""Processing step state machine for a single analysis fetch."""

from enum import Enum
from typing import ClassVar

import structlog


logger = structlog.get_logger()


class ProcessingStep(str, Enum):
    """Coarse progress of an analysis fetch.

    State transitions:
        SELECTING_MODEL -> ANALYZING_SOURCE
        ANALYZING_SOURCE -> BUILDING_PROMPT -> SENDING_REQUEST
            -> RECEIVING_RESPONSE -> PROCESSING_RESULTS
        any primary step -> TRYING_FALLBACK_ENDPOINT
            -> PROCESSING_FALLBACK_RESPONSE -> PROCESSING_RESULTS
        any non-terminal step after ANALYZING_SOURCE -> ANALYSIS_FAILED
    """

    SELECTING_MODEL = "selecting-model"
    ANALYZING_SOURCE = "analyzing-source"
    BUILDING_PROMPT = "building-prompt"
    SENDING_REQUEST = "sending-request"
    RECEIVING_RESPONSE = "receiving-response"
    TRYING_FALLBACK_ENDPOINT = "trying-fallback-endpoint"
    PROCESSING_FALLBACK_RESPONSE = "processing-fallback-response"
    PROCESSING_RESULTS = "processing-results"
    ANALYSIS_FAILED = "analysis-failed"


class ProcessingStateError(Exception):
    """Raised when an out-of-order processing step is attempted."""

    def __init__(self, from_state: ProcessingStep, to_state: ProcessingStep) -> None:
        """Initialize the error.

        Args:
            from_state: The current step.
            to_state: The attempted target step.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid processing step transition: {from_state.value} -> {to_state.value}"
        )


class ProcessingStateMachine:
    """State machine for one analysis fetch.

    A new machine is created for every fetch attempt, starting in
    SELECTING_MODEL. Logs invariant violations when invalid transitions
    are attempted.
    """

    VALID_TRANSITIONS: ClassVar[dict[ProcessingStep, set[ProcessingStep]]] = {
        ProcessingStep.SELECTING_MODEL: {ProcessingStep.ANALYZING_SOURCE},
        ProcessingStep.ANALYZING_SOURCE: {
            ProcessingStep.BUILDING_PROMPT,
            ProcessingStep.TRYING_FALLBACK_ENDPOINT,
            ProcessingStep.ANALYSIS_FAILED,
        },
        ProcessingStep.BUILDING_PROMPT: {
            ProcessingStep.SENDING_REQUEST,
            ProcessingStep.TRYING_FALLBACK_ENDPOINT,
            ProcessingStep.ANALYSIS_FAILED,
        },
        ProcessingStep.SENDING_REQUEST: {
            ProcessingStep.RECEIVING_RESPONSE,
            ProcessingStep.TRYING_FALLBACK_ENDPOINT,
            ProcessingStep.ANALYSIS_FAILED,
        },
        ProcessingStep.RECEIVING_RESPONSE: {
            ProcessingStep.PROCESSING_RESULTS,
            ProcessingStep.TRYING_FALLBACK_ENDPOINT,
            ProcessingStep.ANALYSIS_FAILED,
        },
        ProcessingStep.TRYING_FALLBACK_ENDPOINT: {
            ProcessingStep.PROCESSING_FALLBACK_RESPONSE,
            ProcessingStep.ANALYSIS_FAILED,
        },
        ProcessingStep.PROCESSING_FALLBACK_RESPONSE: {
            ProcessingStep.PROCESSING_RESULTS,
            ProcessingStep.ANALYSIS_FAILED,
        },
        ProcessingStep.PROCESSING_RESULTS: set(),  # Terminal state
        ProcessingStep.ANALYSIS_FAILED: set(),  # Terminal state
    }

    def __init__(self, fetch_id: str) -> None:
        """Initialize the state machine in SELECTING_MODEL.

        Args:
            fetch_id: Identifier of the fetch for logging.
        """
        self._fetch_id = fetch_id
        self._state = ProcessingStep.SELECTING_MODEL
        self._log = logger.bind(
            fetch_id=fetch_id, component="orchestrator", subcomponent="state_machine"
        )

    @property
    def state(self) -> ProcessingStep:
        """Get the current step."""
        return self._state

    @property
    def fetch_id(self) -> str:
        """Get the fetch ID."""
        return self._fetch_id

    def can_transition(self, to_state: ProcessingStep) -> bool:
        """Check if a transition to the given step is valid.

        Args:
            to_state: The target step.

        Returns:
            True if the transition is valid, False otherwise.
        """
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: ProcessingStep) -> None:
        """Advance to a new step.

        Args:
            to_state: The target step.

        Raises:
            ProcessingStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                from_state=self._state.value,
                to_state=to_state.value,
            )
            raise ProcessingStateError(self._state, to_state)

        old_state = self._state
        self._state = to_state
        self._log.debug(
            "processing_step_transition",
            from_state=old_state.value,
            to_state=to_state.value,
        )

    def is_terminal(self) -> bool:
        """Check if the current step is terminal."""
        return self._state in (
            ProcessingStep.PROCESSING_RESULTS,
            ProcessingStep.ANALYSIS_FAILED,
        )

    def is_failed(self) -> bool:
        """Check if the fetch failed."""
        return self._state == ProcessingStep.ANALYSIS_FAILED
