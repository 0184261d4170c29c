"""Unit tests for the processing step state machine."""

import pytest

from src.features.orchestrator.state_machine import (
    ProcessingStateError,
    ProcessingStateMachine,
    ProcessingStep,
)


_PRIMARY_PATH = [
    ProcessingStep.ANALYZING_SOURCE,
    ProcessingStep.BUILDING_PROMPT,
    ProcessingStep.SENDING_REQUEST,
    ProcessingStep.RECEIVING_RESPONSE,
    ProcessingStep.PROCESSING_RESULTS,
]


class TestProcessingStep:
    """Tests for ProcessingStep enum."""

    @pytest.mark.unit
    def test_values_are_display_names(self) -> None:
        """Should expose the kebab-case step names."""
        assert ProcessingStep.TRYING_FALLBACK_ENDPOINT.value == "trying-fallback-endpoint"
        assert ProcessingStep.ANALYSIS_FAILED == "analysis-failed"
        assert len(ProcessingStep) == 9


class TestProcessingStateMachine:
    """Tests for ProcessingStateMachine."""

    @pytest.mark.unit
    def test_initial_state(self) -> None:
        """Should start in SELECTING_MODEL."""
        machine = ProcessingStateMachine("fetch-1")

        assert machine.state == ProcessingStep.SELECTING_MODEL
        assert machine.fetch_id == "fetch-1"
        assert not machine.is_terminal()

    @pytest.mark.unit
    def test_primary_success_path(self) -> None:
        """Should walk the primary endpoint path to PROCESSING_RESULTS."""
        machine = ProcessingStateMachine("fetch-1")
        for step in _PRIMARY_PATH:
            machine.transition(step)

        assert machine.is_terminal()
        assert not machine.is_failed()

    @pytest.mark.unit
    @pytest.mark.parametrize("depth", [1, 2, 3, 4])
    def test_fallback_reachable_from_any_primary_step(self, depth: int) -> None:
        """Should allow switching to the fallback from every primary step."""
        machine = ProcessingStateMachine("fetch-1")
        for step in _PRIMARY_PATH[:depth]:
            machine.transition(step)

        machine.transition(ProcessingStep.TRYING_FALLBACK_ENDPOINT)
        machine.transition(ProcessingStep.PROCESSING_FALLBACK_RESPONSE)
        machine.transition(ProcessingStep.PROCESSING_RESULTS)

        assert machine.state == ProcessingStep.PROCESSING_RESULTS

    @pytest.mark.unit
    def test_fallback_failure_is_terminal(self) -> None:
        """Should end in ANALYSIS_FAILED with no further transitions."""
        machine = ProcessingStateMachine("fetch-1")
        machine.transition(ProcessingStep.ANALYZING_SOURCE)
        machine.transition(ProcessingStep.TRYING_FALLBACK_ENDPOINT)
        machine.transition(ProcessingStep.ANALYSIS_FAILED)

        assert machine.is_failed()
        assert machine.is_terminal()
        for step in ProcessingStep:
            assert not machine.can_transition(step)

    @pytest.mark.unit
    def test_cannot_skip_steps(self) -> None:
        """Should reject out-of-order transitions."""
        machine = ProcessingStateMachine("fetch-1")

        with pytest.raises(ProcessingStateError) as exc_info:
            machine.transition(ProcessingStep.SENDING_REQUEST)

        assert exc_info.value.from_state == ProcessingStep.SELECTING_MODEL
        assert exc_info.value.to_state == ProcessingStep.SENDING_REQUEST
        assert machine.state == ProcessingStep.SELECTING_MODEL

    @pytest.mark.unit
    def test_cannot_fail_before_analyzing(self) -> None:
        """Should not fail straight from SELECTING_MODEL."""
        machine = ProcessingStateMachine("fetch-1")

        assert not machine.can_transition(ProcessingStep.ANALYSIS_FAILED)

    @pytest.mark.unit
    def test_fallback_cannot_return_to_primary(self) -> None:
        """Should not move from the fallback back to the primary path."""
        machine = ProcessingStateMachine("fetch-1")
        machine.transition(ProcessingStep.ANALYZING_SOURCE)
        machine.transition(ProcessingStep.TRYING_FALLBACK_ENDPOINT)

        with pytest.raises(ProcessingStateError):
            machine.transition(ProcessingStep.SENDING_REQUEST)
