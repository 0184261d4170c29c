"""Unit tests for the extraction, references, roleplay, translation and highlight tools."""

import json

import pytest

from src.features.api.errors import RequestValidationError
from src.features.api.schemas import (
    HighlightRequest,
    InfoExtractionRequest,
    RoleplayRequest,
    SourceAnalysisRequest,
    TranslationRequest,
)
from src.features.api.service import (
    FALLBACK_AUTHOR_EMOJI,
    FALLBACK_CHARACTER_SKETCH,
    REFERENCE_CACHE_TTL,
    ROLEPLAY_FALLBACK_NOTE,
    SourceLensService,
)
from src.features.llm.errors import LlmApiError, LlmProcessingError
from src.features.llm.parsing import DEFAULT_RELIABILITY
from src.features.llm.prompts import LARGE_DOCUMENT_CHARS
from tests.helpers.fakes import FakeClientFactory


_METADATA = {"author": "Mary Shelley", "date": "1818", "title": "Frankenstein"}

_REFERENCES_JSON = json.dumps(
    {
        "references": [
            {
                "title": "The Endurance of Frankenstein",
                "author": "George Levine",
                "year": 1979,
                "citation": "Levine, George. The Endurance of Frankenstein. 1979.",
                "relevance": "Classic critical collection.",
                "type": "book",
                "importance": 5,
            }
        ]
    }
)

_SKETCH = """Mary Shelley was a novelist raised among radicals.
EMOJI: ⚡
BIRTH_YEAR: 1797
DEATH_YEAR: 1851
BIRTHPLACE: Unknown
"""


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestExtractInfo:
    """Tests for SourceLensService.extract_info."""

    @pytest.mark.unit
    def test_list_extraction_sends_full_document(self) -> None:
        """Should prompt with the whole short document and report the full strategy."""
        factory = FakeClientFactory(responses={"google": "1. Geneva\n2. Ingolstadt\n"})

        response = SourceLensService(factory).extract_info(
            InfoExtractionRequest(content="From Geneva to Ingolstadt.", query="places")
        )

        assert response["extractedInfo"] == "1. Geneva\n2. Ingolstadt"
        assert response["contentStrategy"] == "full"
        assert response["chunkingApplied"] is False
        assert response["modelUsed"] == "Gemini 2.0 Flash Lite"
        call = factory.clients["google"].calls[0]
        assert "From Geneva to Ingolstadt." in str(call["prompt"])
        assert call["temperature"] == 0.2
        assert call["max_tokens"] == 31000
        assert call["system_instruction"]

    @pytest.mark.unit
    def test_table_output_decoded(self) -> None:
        """Should decode table output when the model returned JSON."""
        table = '{"headers": ["Place"], "rows": [["Geneva"]]}'
        factory = FakeClientFactory(responses={"google": table})

        response = SourceLensService(factory).extract_info(
            InfoExtractionRequest(content="Geneva.", query="places", format="table")
        )

        assert response["extractedInfo"] == {"headers": ["Place"], "rows": [["Geneva"]]}
        assert response["format"] == "table"

    @pytest.mark.unit
    def test_long_document_is_sampled(self) -> None:
        """Should sample a very long document and say so."""
        factory = FakeClientFactory(responses={"google": "1. item"})
        content = "line of text\n" * (LARGE_DOCUMENT_CHARS // 10)

        response = SourceLensService(factory).extract_info(
            InfoExtractionRequest(content=content, query="anything")
        )

        assert response["contentStrategy"] == "chunked"
        assert response["contentLength"] == len(content)
        prompt = str(factory.clients["google"].calls[0]["prompt"])
        assert len(prompt) < len(content)
        assert "NOTE:" in prompt

    @pytest.mark.unit
    def test_missing_query_rejected(self) -> None:
        """Should reject a request without a query."""
        factory = FakeClientFactory()

        with pytest.raises(RequestValidationError, match="content, query"):
            SourceLensService(factory).extract_info(InfoExtractionRequest(content="text"))

        assert factory.requested == []


class TestSuggestedReferences:
    """Tests for SourceLensService.suggested_references."""

    def _request(self, **overrides: object) -> SourceAnalysisRequest:
        values: dict[str, object] = {"source": "It was on a dreary night.", "metadata": _METADATA}
        values.update(overrides)
        return SourceAnalysisRequest.model_validate(values)

    @pytest.mark.unit
    def test_references_normalized(self) -> None:
        """Should fill defaults and attach a scholar search link."""
        factory = FakeClientFactory(responses={"google": _REFERENCES_JSON})

        response = SourceLensService(factory).suggested_references(self._request())

        reference = response["references"][0]  # type: ignore[index]
        assert reference["reliability"] == DEFAULT_RELIABILITY
        assert reference["importance"] == 5
        assert reference["url"].startswith("https://scholar.google.com/scholar?q=George+Levine")
        assert response["citationStyle"] == "chicago"
        assert response["modelUsed"] == "Gemini 2.0 Flash"
        assert factory.clients["google"].calls[0]["json_output"] is True

    @pytest.mark.unit
    def test_cached_within_ttl(self) -> None:
        """Should answer a repeated request from cache until the TTL passes."""
        clock = FakeClock()
        factory = FakeClientFactory(responses={"google": _REFERENCES_JSON})
        service = SourceLensService(factory, clock=clock)

        service.suggested_references(self._request())
        service.suggested_references(self._request())
        clock.now += REFERENCE_CACHE_TTL + 1
        service.suggested_references(self._request())

        assert len(factory.clients["google"].calls) == 2

    @pytest.mark.unit
    def test_falls_back_to_gpt(self) -> None:
        """Should retry on gpt-4o-mini when the requested model fails."""
        factory = FakeClientFactory(
            responses={"openai": _REFERENCES_JSON}, failing_providers={"google"}
        )

        response = SourceLensService(factory).suggested_references(self._request())

        assert factory.requested == ["gemini-flash", "gpt-4o-mini"]
        assert response["modelUsed"] == "GPT-4o Mini"

    @pytest.mark.unit
    def test_unparseable_everywhere_uses_metadata_reference(self) -> None:
        """Should return one reference built from the metadata."""
        factory = FakeClientFactory(responses={"google": "no json", "openai": "still none"})

        response = SourceLensService(factory).suggested_references(self._request())

        references = response["references"]
        assert len(references) == 1  # type: ignore[arg-type]
        assert references[0]["author"] == "Mary Shelley"  # type: ignore[index]
        assert "1818" in references[0]["title"]  # type: ignore[index]


class TestRoleplay:
    """Tests for SourceLensService.roleplay."""

    def _request(self, **overrides: object) -> RoleplayRequest:
        values: dict[str, object] = {
            "source": "You are my creator, but I am your master.",
            "metadata": _METADATA,
        }
        values.update(overrides)
        return RoleplayRequest.model_validate(values)

    @pytest.mark.unit
    def test_initialize_returns_sketch(self) -> None:
        """Should build the character sketch and parse its fields."""
        factory = FakeClientFactory(responses={"openai": _SKETCH})

        response = SourceLensService(factory).roleplay(self._request(initialize=True))

        assert response["response"] == "Well?"
        assert response["characterSketch"] == "Mary Shelley was a novelist raised among radicals."
        assert response["authorEmoji"] == "⚡"
        assert response["birthYear"] == "1797"
        assert response["birthplace"] is None
        assert factory.requested == ["gpt-4.1"]

    @pytest.mark.unit
    def test_sketch_cached_per_author_and_date(self) -> None:
        """Should generate the sketch once for the same author and date."""
        factory = FakeClientFactory(
            responses={"openai": _SKETCH, "anthropic": "I wrote it in Geneva."}
        )
        service = SourceLensService(factory)

        service.roleplay(self._request(initialize=True))
        response = service.roleplay(self._request(message="Where did you write it?"))

        assert response["response"] == "I wrote it in Geneva."
        assert factory.requested == ["gpt-4.1", "claude-haiku"]

    @pytest.mark.unit
    def test_conversation_history_in_prompt(self) -> None:
        """Should label earlier turns by speaker."""
        factory = FakeClientFactory(responses={"openai": _SKETCH, "anthropic": "Yes."})

        response = SourceLensService(factory).roleplay(
            self._request(
                message="Truly?",
                conversation=[
                    {"role": "user", "content": "Did you fear him?"},
                    {"role": "assistant", "content": "Every night."},
                ],
            )
        )

        prompt = str(response["rawPrompt"])
        assert "Questioner: Did you fear him?" in prompt
        assert "Mary Shelley: Every night." in prompt
        assert factory.clients["anthropic"].calls[0]["max_tokens"] == 400

    @pytest.mark.unit
    def test_sketch_failure_uses_fallback(self) -> None:
        """Should keep going with a generic sketch when the sketch model fails."""
        factory = FakeClientFactory(failing_providers={"openai"})

        response = SourceLensService(factory).roleplay(self._request(initialize=True))

        assert response["characterSketch"] == FALLBACK_CHARACTER_SKETCH
        assert response["authorEmoji"] == FALLBACK_AUTHOR_EMOJI

    @pytest.mark.unit
    def test_gemini_failure_marked_fallback(self) -> None:
        """Should answer from gpt-4o-mini and mark the reply."""
        factory = FakeClientFactory(
            responses={"openai": "I am tired."}, failing_providers={"google"}
        )

        response = SourceLensService(factory).roleplay(
            self._request(message="How are you?", model="gemini-flash")
        )

        assert response["response"] == "I am tired." + ROLEPLAY_FALLBACK_NOTE
        assert factory.requested[-2:] == ["gemini-flash", "gpt-4o-mini"]

    @pytest.mark.unit
    def test_non_gemini_failure_propagates(self) -> None:
        """Should raise when a non-Gemini model fails."""
        factory = FakeClientFactory(
            responses={"openai": _SKETCH}, failing_providers={"anthropic"}
        )

        with pytest.raises(LlmApiError):
            SourceLensService(factory).roleplay(self._request(message="Hello?"))

    @pytest.mark.unit
    def test_missing_metadata_rejected(self) -> None:
        """Should reject a request without metadata."""
        with pytest.raises(RequestValidationError, match="Missing required fields"):
            SourceLensService(FakeClientFactory()).roleplay(
                RoleplayRequest(source="text", initialize=True)
            )


class TestTranslate:
    """Tests for SourceLensService.translate."""

    @pytest.mark.unit
    def test_translation_response(self) -> None:
        """Should return the translation with the language display name."""
        factory = FakeClientFactory(responses={"google": "  Il etait une fois.  "})

        response = SourceLensService(factory).translate(
            TranslationRequest(source="Once upon a time.", target_language="fr")
        )

        assert response["translation"] == "Il etait une fois."
        assert response["targetLanguage"] == "French"
        assert response["modelUsed"] == "Gemini 2.0 Flash"
        call = factory.clients["google"].calls[0]
        assert call["max_tokens"] == 8192
        assert call["temperature"] == 0.3

    @pytest.mark.unit
    def test_non_google_token_limit(self) -> None:
        """Should use the smaller budget for other providers."""
        factory = FakeClientFactory(responses={"anthropic": "Hola."})

        SourceLensService(factory).translate(
            TranslationRequest(source="Hello.", target_language="es", model_id="claude-haiku")
        )

        assert factory.clients["anthropic"].calls[0]["max_tokens"] == 4000

    @pytest.mark.unit
    def test_unknown_language_is_english(self) -> None:
        """Should fall back to English for an unknown language code."""
        factory = FakeClientFactory(responses={"google": "Hello."})

        response = SourceLensService(factory).translate(
            TranslationRequest(source="Hallo.", target_language="xx")
        )

        assert response["targetLanguage"] == "English"

    @pytest.mark.unit
    def test_missing_source_rejected(self) -> None:
        """Should reject an empty source."""
        with pytest.raises(RequestValidationError, match="Missing source text"):
            SourceLensService(FakeClientFactory()).translate(TranslationRequest())


class TestHighlightSegments:
    """Tests for SourceLensService.highlight_segments."""

    _CONTENT = "The rain fell. The creature watched the cottage. Winter came early."

    def _segments_json(self) -> str:
        return json.dumps(
            {
                "segments": [
                    {"text": "Winter came early.", "score": 0.4, "explanation": "season"},
                    {"text": "The creature watched the cottage.", "score": 1.7},
                    {"text": "A line that is not there.", "score": 0.9},
                ]
            }
        )

    @pytest.mark.unit
    def test_segments_ranked_and_located(self) -> None:
        """Should clamp, rank and locate segments, dropping invented ones."""
        factory = FakeClientFactory(responses={"google": self._segments_json()})

        response = SourceLensService(factory).highlight_segments(
            HighlightRequest(content=self._CONTENT, query="watching")
        )

        segments = response["segments"]
        assert [s["text"] for s in segments] == [  # type: ignore[union-attr]
            "The creature watched the cottage.",
            "Winter came early.",
        ]
        first = segments[0]  # type: ignore[index]
        assert first["score"] == 1.0
        assert self._CONTENT[first["startIndex"] : first["endIndex"]] == first["text"]
        assert response["totalSegments"] == 2
        call = factory.clients["google"].calls[0]
        assert call["temperature"] == 0.1
        assert call["max_tokens"] == 8000

    @pytest.mark.unit
    def test_gemini_failure_falls_back(self) -> None:
        """Should retry on gpt-4o-mini when Gemini fails."""
        factory = FakeClientFactory(
            responses={"openai": self._segments_json()}, failing_providers={"google"}
        )

        response = SourceLensService(factory).highlight_segments(
            HighlightRequest(content=self._CONTENT, query="watching")
        )

        assert factory.requested == ["gemini-flash", "gpt-4o-mini"]
        assert response["totalSegments"] == 2

    @pytest.mark.unit
    def test_unparseable_response_raises(self) -> None:
        """Should raise a processing error when no segments come back."""
        factory = FakeClientFactory(responses={"google": "Sorry, I cannot."})

        with pytest.raises(LlmProcessingError):
            SourceLensService(factory).highlight_segments(
                HighlightRequest(content=self._CONTENT, query="watching")
            )
