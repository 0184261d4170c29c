"""Document metadata and analysis result models shared by client and API."""

from collections.abc import Mapping
from typing import Any, Final

from pydantic import ConfigDict, Field, field_validator, model_validator

from src.data_model.base import WireModel


DEFAULT_SUMMARY: Final = "Analysis complete."
DEFAULT_ANALYSIS_BODY: Final = "See the detailed results."
DEFAULT_FOLLOWUP_QUESTIONS: Final[tuple[str, ...]] = (
    "What is the historical context of this document?",
    "What are the key themes in this text?",
    "How does this text relate to the author's other works?",
)


class DocumentMetadata(WireModel):
    """Descriptive metadata supplied alongside a primary source.

    Every field is optional. Unknown keys sent by clients are kept so
    they survive a round trip through the orchestrator.
    """

    model_config = ConfigDict(extra="allow")

    date: str = ""
    author: str = ""
    research_goals: str = ""
    additional_info: str = ""
    title: str = ""
    summary: str = ""
    document_emoji: str = ""
    document_type: str = ""
    genre: str = ""
    place_of_publication: str = ""
    academic_subfield: str = ""
    tags: list[str] = Field(default_factory=list)
    research_value: str = ""

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [tag.strip() for tag in value.split(",") if tag.strip()]
        return value

    def is_empty(self) -> bool:
        """Check whether no field carries a value."""
        return not self.model_dump(exclude_defaults=True)

    def to_wire(self) -> dict[str, object]:
        """Serialize set fields to camelCase, omitting empty defaults."""
        return self.model_dump(mode="json", by_alias=True, exclude_defaults=True)


class AnalysisResult(WireModel):
    """Preliminary analysis of a source.

    Attributes:
        summary: One-sentence summary.
        analysis_body: Preliminary analysis text (``analysis`` on the wire).
        followup_questions: Questions the model wants answered.
    """

    summary: str
    analysis_body: str = Field(alias="analysis")
    followup_questions: list[str] = Field(default_factory=list)

    @classmethod
    def with_defaults(cls, data: Mapping[str, Any] | None) -> "AnalysisResult":
        """Build a result from a possibly partial payload.

        An empty or missing summary or analysis text is replaced with a
        fixed placeholder. Follow-up questions fall back to three generic
        questions only when absent or not a list; an empty list is kept.

        Args:
            data: Decoded ``analysis`` object, or None.

        Returns:
            A fully populated AnalysisResult.
        """
        data = data or {}
        questions = data.get("followupQuestions", data.get("followup_questions"))
        if isinstance(questions, list):
            followups = [str(q) for q in questions]
        else:
            followups = list(DEFAULT_FOLLOWUP_QUESTIONS)

        return cls(
            summary=str(data.get("summary") or DEFAULT_SUMMARY),
            analysis=str(data.get("analysis") or DEFAULT_ANALYSIS_BODY),
            followup_questions=followups,
        )
