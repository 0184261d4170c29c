"""End-to-end tests running the orchestrator against the Flask API."""

from dataclasses import dataclass, field

import httpx
import pytest

from src.data_model import DocumentMetadata
from src.features.api import create_app
from src.features.llm.errors import LlmApiError
from src.features.llm.models import ModelConfig
from src.features.orchestrator import store as actions
from src.features.orchestrator.orchestrator import AnalysisOrchestrator
from src.features.orchestrator.state_machine import ProcessingStep
from src.features.orchestrator.store import AppState, AppStore
from src.features.orchestrator.strategies import default_strategies
from src.features.orchestrator.transport import AnalysisApiClient
from tests.helpers.fakes import FakeClientFactory, make_settings


_ANALYSIS_TEXT = """SUMMARY: A merchant's ledger.
PRELIMINARY ANALYSIS: Debts rise through the winter.
FOLLOW-UP QUESTIONS:
1. Who were the creditors?
2. What was traded?
3. Did the business survive?
"""


@dataclass
class ScriptedClient:
    """Replays outcomes in order; exceptions are raised."""

    outcomes: list[str | Exception]
    prompts: list[str] = field(default_factory=list)

    def generate_content(self, prompt: str, system_instruction: str | None = None, **_: object) -> str:
        self.prompts.append(prompt)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _run(client_factory: object, model: str = "gemini-flash-lite") -> AppState:
    app = create_app(make_settings(), client_factory)  # type: ignore[arg-type]
    store = AppStore(
        AppState(
            source_text="Owed to J. Smith, 4 pounds.",
            metadata=DocumentMetadata(author="T. Brown", date="1790"),
        )
    )
    store.dispatch(actions.select_model, model)

    transport = httpx.WSGITransport(app=app)
    with AnalysisApiClient("http://sourcelens.test", transport=transport) as api:
        orchestrator = AnalysisOrchestrator(store, default_strategies(api))
        orchestrator.mount()
        orchestrator.run_pending()
        orchestrator.close()
    return store.state


class TestOrchestratorAgainstApi:
    """Tests for the full client to server analysis path."""

    @pytest.mark.integration
    def test_primary_endpoint(self) -> None:
        """Should store the analysis returned by the primary endpoint."""
        factory = FakeClientFactory(responses={"google": _ANALYSIS_TEXT})

        state = _run(factory)

        assert state.processing_step == ProcessingStep.PROCESSING_RESULTS
        assert state.processing_data["strategy"] == "primary"
        assert state.initial_analysis is not None
        assert state.initial_analysis.summary == "A merchant's ledger."
        assert state.raw_response == _ANALYSIS_TEXT
        assert "Owed to J. Smith" in (state.raw_prompt or "")
        assert state.is_loading is False

    @pytest.mark.integration
    def test_fallback_after_primary_failure(self) -> None:
        """Should recover through the JSON endpoint when the first call fails."""
        scripted = ScriptedClient(
            outcomes=[
                LlmApiError("overloaded", status_code=529),
                '{"summary": "Ledger of debts.", "analysis": "Winter hardship."}',
            ]
        )

        def factory(model: ModelConfig) -> ScriptedClient:
            return scripted

        state = _run(factory, model="claude-haiku")

        assert state.processing_data["strategy"] == "fallback"
        assert state.initial_analysis is not None
        assert state.initial_analysis.summary == "Ledger of debts."
        assert state.initial_analysis.analysis_body == "Winter hardship."
        assert len(state.initial_analysis.followup_questions) == 3
        assert len(scripted.prompts) == 2

    @pytest.mark.integration
    def test_both_endpoints_failing(self) -> None:
        """Should end in the failed step without an analysis."""
        factory = FakeClientFactory(failing_providers={"google"})

        state = _run(factory)

        assert state.processing_step == ProcessingStep.ANALYSIS_FAILED
        assert state.initial_analysis is None
        assert state.is_loading is False
