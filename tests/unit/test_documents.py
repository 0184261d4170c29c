"""Unit tests for document metadata and analysis result models."""

import pytest

from src.data_model import (
    DEFAULT_ANALYSIS_BODY,
    DEFAULT_FOLLOWUP_QUESTIONS,
    DEFAULT_SUMMARY,
    AnalysisResult,
    DocumentMetadata,
)


class TestDocumentMetadata:
    """Tests for DocumentMetadata."""

    @pytest.mark.unit
    def test_accepts_camel_case_keys(self) -> None:
        """Should populate snake_case fields from wire keys."""
        metadata = DocumentMetadata.model_validate(
            {"researchGoals": "Labor", "placeOfPublication": "London"}
        )

        assert metadata.research_goals == "Labor"
        assert metadata.place_of_publication == "London"

    @pytest.mark.unit
    def test_null_values_become_defaults(self) -> None:
        """Should treat JSON null as an unset field."""
        metadata = DocumentMetadata.model_validate({"author": None, "date": "1848"})

        assert metadata.author == ""
        assert metadata.date == "1848"

    @pytest.mark.unit
    def test_comma_separated_tags(self) -> None:
        """Should split a comma-separated tag string."""
        metadata = DocumentMetadata.model_validate({"tags": "labor, Europe, ,1848"})

        assert metadata.tags == ["labor", "Europe", "1848"]

    @pytest.mark.unit
    def test_is_empty(self) -> None:
        """Should be empty only when no field carries a value."""
        assert DocumentMetadata().is_empty()
        assert DocumentMetadata.model_validate({"author": None}).is_empty()
        assert not DocumentMetadata(author="Ada").is_empty()

    @pytest.mark.unit
    def test_to_wire_omits_unset_fields(self) -> None:
        """Should emit only set fields, camelCased, keeping extras."""
        metadata = DocumentMetadata.model_validate(
            {"author": "Ada", "researchGoals": "Computing", "customField": "kept"}
        )

        assert metadata.to_wire() == {
            "author": "Ada",
            "researchGoals": "Computing",
            "customField": "kept",
        }


class TestAnalysisResult:
    """Tests for AnalysisResult."""

    @pytest.mark.unit
    def test_wire_round_trip(self) -> None:
        """Should read and write the analysis wire keys."""
        wire = {"summary": "S", "analysis": "A", "followupQuestions": ["Q"]}

        result = AnalysisResult.model_validate(wire)

        assert result.analysis_body == "A"
        assert result.to_wire() == wire

    @pytest.mark.unit
    def test_with_defaults_from_empty(self) -> None:
        """Should synthesize the fixed defaults from an empty payload."""
        result = AnalysisResult.with_defaults({})

        assert result.summary == DEFAULT_SUMMARY
        assert result.analysis_body == DEFAULT_ANALYSIS_BODY
        assert result.followup_questions == list(DEFAULT_FOLLOWUP_QUESTIONS)
        assert AnalysisResult.with_defaults(None) == result

    @pytest.mark.unit
    def test_with_defaults_keeps_present_fields(self) -> None:
        """Should only fill the fields that are missing."""
        result = AnalysisResult.with_defaults({"summary": "Mine"})

        assert result.summary == "Mine"
        assert result.analysis_body == DEFAULT_ANALYSIS_BODY
        assert result.followup_questions == list(DEFAULT_FOLLOWUP_QUESTIONS)

    @pytest.mark.unit
    def test_with_defaults_keeps_empty_question_list(self) -> None:
        """Should keep an explicit empty list of follow-up questions."""
        result = AnalysisResult.with_defaults({"summary": "Mine", "followupQuestions": []})

        assert result.followup_questions == []

    @pytest.mark.unit
    def test_with_defaults_replaces_non_list_questions(self) -> None:
        """Should use the default questions when the field is not a list."""
        result = AnalysisResult.with_defaults({"followupQuestions": "Why?"})

        assert result.followup_questions == list(DEFAULT_FOLLOWUP_QUESTIONS)
