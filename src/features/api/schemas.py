"""Request body schemas for the API routes."""

from typing import Any, TypeVar

from pydantic import Field, ValidationError

from src.data_model import DocumentMetadata, WireModel
from src.features.api.errors import RequestValidationError


T = TypeVar("T", bound=WireModel)


class SourceAnalysisRequest(WireModel):
    """Body shared by the source analysis endpoints.

    Attributes:
        source: Primary source text.
        metadata: Document metadata.
        perspective: Optional interpretive lens.
        model: Model identifier, including legacy ids such as ``gpt``.
        model_id: Registry id; wins over ``model`` when both are sent.
    """

    source: str = ""
    metadata: DocumentMetadata | None = None
    perspective: str = ""
    model: str | None = None
    model_id: str | None = None

    def require_source(self) -> tuple[str, DocumentMetadata]:
        """Return source and metadata, rejecting requests missing either.

        Raises:
            RequestValidationError: If source or metadata is absent.
        """
        if not self.source or self.metadata is None or self.metadata.is_empty():
            msg = "Missing required fields"
            raise RequestValidationError(msg)
        return self.source, self.metadata

    @property
    def effective_model_id(self) -> str | None:
        """Model identifier the handler should resolve."""
        return self.model_id or self.model


class MetadataExtractionRequest(WireModel):
    """Body for metadata extraction."""

    text: str = ""


class DraftPayload(WireModel):
    """A user draft to summarize."""

    title: str = ""
    content: str = ""


class DraftSummaryRequest(WireModel):
    """Body for draft summarization."""

    draft: DraftPayload | None = None
    model_id: str = "gemini-flash-lite"


class WikiOverviewRequest(WireModel):
    """Body for author/date overview generation."""

    title: str = ""
    source_context: dict[str, Any] = Field(default_factory=dict)
    type: str = ""


class InfoExtractionRequest(WireModel):
    """Body for extracting lists or tables of information from a document.

    Attributes:
        content: Document text.
        query: What to extract, in the user's words.
        model_id: Registry id of the model to use.
        format: ``list`` or ``table``.
    """

    content: str = ""
    query: str = ""
    model_id: str = "gemini-flash-lite"
    format: str = "list"

    def require_fields(self) -> tuple[str, str]:
        """Return content and query.

        Raises:
            RequestValidationError: If either is empty.
        """
        if not self.content or not self.query:
            msg = "Missing required fields (content, query)"
            raise RequestValidationError(msg)
        return self.content, self.query


class ConversationTurn(WireModel):
    """One earlier message in a roleplay conversation."""

    role: str = "user"
    content: str = ""


class RoleplayRequest(WireModel):
    """Body for a conversation with the author of a source."""

    source: str = ""
    metadata: DocumentMetadata | None = None
    message: str = ""
    initialize: bool = False
    conversation: list[ConversationTurn] = Field(default_factory=list)
    model: str = "claude"


class TranslationRequest(WireModel):
    """Body for translating a source.

    Attributes:
        literal_to_poetic: 0 is word-for-word, 1 is freely poetic.
        translation_scope: ``all`` or a description of the passage to
            translate.
        explanation_level: ``minimal``, ``moderate`` or ``extensive``.
        continuation_context: Notes carried over from the previous chunk
            when a long source is translated in pieces.
    """

    source: str = ""
    metadata: DocumentMetadata | None = None
    target_language: str = "en"
    translation_scope: str = "all"
    explanation_level: str = "minimal"
    literal_to_poetic: float = Field(default=0.5, ge=0.0, le=1.0)
    preserve_line_breaks: bool = True
    include_alternatives: bool = False
    model_id: str = "gemini-flash"
    is_continuation: bool = False
    continuation_context: str = ""


class HighlightRequest(WireModel):
    """Body for finding the passages of a text that best match a query."""

    content: str = ""
    query: str = ""
    model_id: str = "gemini-flash"
    num_segments: int = Field(default=5, ge=1, le=50)

    def require_fields(self) -> tuple[str, str]:
        """Return content and query.

        Raises:
            RequestValidationError: If either is empty.
        """
        if not self.content or not self.query:
            msg = "Missing required fields (content, query)"
            raise RequestValidationError(msg)
        return self.content, self.query


def parse_body(model: type[T], payload: Any) -> T:
    """Validate a decoded JSON body against a schema.

    Args:
        model: Schema class.
        payload: Decoded JSON, or None when the body was not JSON.

    Returns:
        Validated model instance.

    Raises:
        RequestValidationError: If the payload does not match the schema.
    """
    if not isinstance(payload, dict):
        msg = "Request body must be a JSON object"
        raise RequestValidationError(msg)
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        msg = f"{location}: {first['msg']}"
        raise RequestValidationError(msg) from exc
