"""LLM-backed operations behind the API routes."""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections.abc import Callable

import structlog

from src.data_model import DocumentMetadata
from src.features.api.errors import RequestValidationError
from src.features.api.schemas import (
    DraftSummaryRequest,
    HighlightRequest,
    InfoExtractionRequest,
    MetadataExtractionRequest,
    RoleplayRequest,
    SourceAnalysisRequest,
    TranslationRequest,
    WikiOverviewRequest,
)
from src.features.llm.errors import LlmApiError, LlmAuthError, LlmProcessingError
from src.features.llm.factory import ClientFactory
from src.features.llm.models import ModelConfig, get_model_by_id
from src.features.llm.parsing import (
    normalize_reference,
    parse_analysis_response,
    parse_character_sketch,
    parse_draft_summary,
    parse_fallback_analysis,
    parse_highlight_segments,
    parse_metadata_response,
    parse_references,
)
from src.features.llm.prompts import (
    EXTRACTION_SYSTEM_INSTRUCTION,
    METADATA_EXTRACTION_INSTRUCTION,
    REFERENCE_SOURCE_CHARS,
    TRANSLATOR_SYSTEM_INSTRUCTION,
    build_analysis_prompt,
    build_character_sketch_prompt,
    build_counter_narrative_prompt,
    build_detailed_analysis_prompt,
    build_draft_summary_prompt,
    build_extraction_prompt,
    build_fallback_analysis_prompt,
    build_highlight_prompt,
    build_references_prompt,
    build_roleplay_prompt,
    build_translation_prompt,
    build_wiki_overview_prompt,
    language_name,
    sample_large_document,
)


logger = structlog.get_logger()

_DEFAULT_TEMPERATURE = 0.7

INITIAL_ANALYSIS_MAX_TOKENS = 700
FALLBACK_ANALYSIS_MAX_TOKENS = 1000
COUNTER_NARRATIVE_MAX_TOKENS = 1500
DETAILED_ANALYSIS_MAX_TOKENS = 1500
WIKI_OVERVIEW_MAX_TOKENS = 200
DRAFT_SUMMARY_MAX_TOKENS = 65536

DRAFT_MAX_CHARS = 300_000
DRAFT_TRUNCATION_NOTE = "\n\n[Note: Draft was truncated due to length.]"

EXTRACTION_MAX_TOKENS = 31000
REFERENCES_MAX_TOKENS = 1000
REFERENCE_CACHE_TTL = 30 * 60
ROLEPLAY_MAX_TOKENS = 400
TRANSLATION_MAX_TOKENS = 4000
HIGHLIGHT_MAX_TOKENS = 6000

CHARACTER_MODEL_ID = "gpt-4.1"
FALLBACK_CHARACTER_SKETCH = (
    "A historical figure from their time period, knowledgeable about their work."
)
FALLBACK_AUTHOR_EMOJI = "\U0001f464"
ROLEPLAY_FALLBACK_NOTE = " [Note: Generated using fallback model due to Gemini error]"

# Endpoints that take a binary provider flag rather than a registry id.
_GPT_FLAG = "gpt"
_GPT_FLAG_MODEL_ID = "gpt-4o-mini"
_CLAUDE_DEFAULT_MODEL_ID = "claude-haiku"


def _flag_model(model: str | None) -> ModelConfig:
    """Resolve the ``gpt`` vs default provider flag to a model."""
    if model == _GPT_FLAG:
        return get_model_by_id(_GPT_FLAG_MODEL_ID)
    return get_model_by_id(_CLAUDE_DEFAULT_MODEL_ID)


def _fallback_reference(metadata: DocumentMetadata) -> dict[str, object]:
    """Reference pointing at the author's own work, used when no model answers."""
    author = metadata.author or "Unknown author"
    title = f"Works by {author}"
    if metadata.date:
        title += f" ({metadata.date})"
    return normalize_reference(
        {
            "title": title,
            "author": author,
            "citation": f"{author}. {metadata.title or 'Collected works'}.",
            "relevance": "Primary works by the author of this source.",
            "type": "other",
            "importance": 3,
        }
    )


class SourceLensService:
    """Formats prompts, dispatches them to providers, and shapes responses.

    Each public method returns the JSON-compatible dict sent back by the
    matching route. Provider failures surface as LlmApiError or
    LlmAuthError; malformed requests as RequestValidationError.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the service.

        Args:
            client_factory: Callable producing a client for a model.
            clock: Monotonic clock used for cache expiry and timings.
        """
        self._client_factory = client_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._reference_cache: dict[str, tuple[float, dict[str, object]]] = {}
        self._character_cache: dict[str, dict[str, str | None]] = {}
        self._log = logger.bind(component="api", subcomponent="service")

    def _generate(
        self,
        model: ModelConfig,
        prompt: str,
        *,
        max_tokens: int,
        system_instruction: str | None = None,
        temperature: float | None = None,
        json_output: bool = False,
    ) -> str:
        client = self._client_factory(model)
        if temperature is None:
            temperature = model.temperature or _DEFAULT_TEMPERATURE
        self._log.info(
            "llm_request_sent",
            provider=model.provider,
            model=model.api_model,
            prompt_length=len(prompt),
        )
        text = client.generate_content(
            prompt,
            system_instruction,
            temperature=temperature,
            max_tokens=max_tokens,
            json_output=json_output,
        )
        self._log.info("llm_response_received", provider=model.provider, length=len(text))
        return text

    def initial_analysis(self, request: SourceAnalysisRequest) -> dict[str, object]:
        """Preliminary summary, analysis and follow-up questions."""
        source, metadata = request.require_source()
        model = get_model_by_id(request.effective_model_id)
        prompt = build_analysis_prompt(source, metadata, request.perspective)

        raw_response = self._generate(
            model, prompt, max_tokens=INITIAL_ANALYSIS_MAX_TOKENS
        )
        analysis = parse_analysis_response(raw_response)

        return {
            "analysis": analysis.to_wire(),
            "rawPrompt": prompt,
            "rawResponse": raw_response,
            "contentLength": len(source),
            "provider": model.provider,
        }

    def fallback_analysis(self, request: SourceAnalysisRequest) -> dict[str, object]:
        """JSON-format analysis; fields the model omits are left out."""
        source, metadata = request.require_source()
        model = get_model_by_id(request.effective_model_id)
        prompt = build_fallback_analysis_prompt(source, metadata, request.perspective)

        raw_response = self._generate(
            model, prompt, max_tokens=FALLBACK_ANALYSIS_MAX_TOKENS, json_output=True
        )

        return {
            "analysis": parse_fallback_analysis(raw_response),
            "rawPrompt": prompt,
            "rawResponse": raw_response,
        }

    def counter_narrative(self, request: SourceAnalysisRequest) -> dict[str, object]:
        """Two-paragraph counter-narrative through at most two lenses."""
        source, metadata = request.require_source()
        model = _flag_model(request.model)
        prompt = build_counter_narrative_prompt(source, metadata, request.perspective)

        raw_response = self._generate(
            model,
            prompt,
            max_tokens=COUNTER_NARRATIVE_MAX_TOKENS,
            temperature=_DEFAULT_TEMPERATURE,
        )

        return {
            "narrative": raw_response,
            "rawPrompt": prompt,
            "rawResponse": raw_response,
        }

    def detailed_analysis(self, request: SourceAnalysisRequest) -> dict[str, object]:
        """Five-part context, author, themes, evidence and significance analysis."""
        source, metadata = request.require_source()
        model = _flag_model(request.model)
        prompt = build_detailed_analysis_prompt(source, metadata, request.perspective)

        raw_response = self._generate(
            model, prompt, max_tokens=DETAILED_ANALYSIS_MAX_TOKENS, temperature=0.5
        )

        return {
            "analysis": raw_response,
            "rawPrompt": prompt,
            "rawResponse": raw_response,
        }

    def extract_metadata(self, request: MetadataExtractionRequest) -> dict[str, object]:
        """Extract title, author, date, tags and related fields from text.

        The result is validated through DocumentMetadata so tags and nulls
        are normalized before being returned.
        """
        if not request.text:
            msg = "Text is required"
            raise RequestValidationError(msg)

        model = get_model_by_id(_GPT_FLAG_MODEL_ID)
        raw_response = self._generate(
            model,
            request.text,
            system_instruction=METADATA_EXTRACTION_INSTRUCTION,
            max_tokens=FALLBACK_ANALYSIS_MAX_TOKENS,
            temperature=0.4,
            json_output=True,
        )
        extracted = parse_metadata_response(raw_response)
        return DocumentMetadata.model_validate(extracted).to_wire()

    def summarize_draft(self, request: DraftSummaryRequest) -> dict[str, object]:
        """Split a draft into titled, summarized sections using a Gemini model."""
        if request.draft is None or not request.draft.content:
            msg = "Draft content is required"
            raise RequestValidationError(msg)

        model = get_model_by_id(request.model_id)
        if model.provider != "google":
            self._log.warning(
                "draft_summary_model_not_google",
                requested=request.model_id,
                fallback="gemini-flash-lite",
            )
            model = get_model_by_id("gemini-flash-lite")

        content = request.draft.content
        to_process = content
        if len(content) > DRAFT_MAX_CHARS:
            to_process = content[:DRAFT_MAX_CHARS] + DRAFT_TRUNCATION_NOTE

        raw_response = self._generate(
            model,
            build_draft_summary_prompt(request.draft.title, to_process),
            max_tokens=DRAFT_SUMMARY_MAX_TOKENS,
            temperature=0.2,
            json_output=True,
        )
        summary = parse_draft_summary(raw_response, to_process)
        sections: list[object] = summary["sections"]  # type: ignore[assignment]

        return {
            **summary,
            "totalSections": len(sections),
            "originalTextLength": len(content),
            "processedTextLength": len(to_process),
            "wordCount": len(content.split()),
        }

    def wiki_overview(self, request: WikiOverviewRequest) -> dict[str, object]:
        """One-sentence historical context for an author or date.

        Gemini is tried first; Anthropic is used if Gemini fails.

        Raises:
            LlmApiError: If both providers fail.
        """
        if not request.title:
            msg = "Missing title parameter"
            raise RequestValidationError(msg)

        prompt = build_wiki_overview_prompt(
            request.title, request.source_context, request.type
        )

        errors: list[str] = []
        for model_id, temperature in (("gemini-flash-lite", 0.2), ("claude-sonnet", 0.4)):
            model = get_model_by_id(model_id)
            try:
                overview = self._generate(
                    model,
                    prompt,
                    max_tokens=WIKI_OVERVIEW_MAX_TOKENS,
                    temperature=temperature,
                )
            except (LlmApiError, LlmAuthError) as exc:
                self._log.warning(
                    "wiki_overview_provider_failed",
                    provider=model.provider,
                    error=str(exc),
                )
                errors.append(f"{model.provider}: {exc}")
                continue
            return {
                "overview": overview.strip(),
                "type": request.type,
                "title": request.title,
                "model": model.id,
            }

        msg = "All providers failed to generate an overview: " + "; ".join(errors)
        raise LlmApiError(msg)

    def extract_info(self, request: InfoExtractionRequest) -> dict[str, object]:
        """Extract a list or table of information matching a query.

        Very long documents are sampled before prompting; the response
        reports whether that happened. Table output is decoded as JSON
        when the model returned JSON.
        """
        content, query = request.require_fields()
        model = get_model_by_id(request.model_id)
        to_process, chunked = sample_large_document(content)
        prompt = build_extraction_prompt(to_process, query, request.format, chunked)

        raw_response = self._generate(
            model,
            prompt,
            system_instruction=EXTRACTION_SYSTEM_INSTRUCTION,
            max_tokens=min(model.max_tokens or EXTRACTION_MAX_TOKENS, EXTRACTION_MAX_TOKENS),
            temperature=0.2,
        )

        extracted: object = raw_response.strip()
        if request.format == "table" and str(extracted).startswith(("{", "[")):
            try:
                extracted = json.loads(str(extracted))
            except json.JSONDecodeError:
                self._log.warning("extraction_table_not_json", preview=raw_response[:200])

        return {
            "extractedInfo": extracted,
            "contentStrategy": "chunked" if chunked else "full",
            "contentLength": len(content),
            "format": request.format,
            "rawResponse": raw_response,
            "modelUsed": model.name,
            "chunkingApplied": chunked,
        }

    def _reference_cache_key(self, source: str, metadata: DocumentMetadata, model_id: str) -> str:
        material = json.dumps(
            [source[:REFERENCE_SOURCE_CHARS], metadata.to_wire(), model_id], sort_keys=True
        )
        return hashlib.md5(material.encode("utf-8")).hexdigest()  # noqa: S324

    def suggested_references(self, request: SourceAnalysisRequest) -> dict[str, object]:
        """Suggest scholarly references for a source.

        Results are cached for REFERENCE_CACHE_TTL seconds. When the
        requested model fails, gpt-4o-mini is tried; when that also fails
        a single reference built from the metadata is returned.
        """
        source, metadata = request.require_source()
        model = get_model_by_id(request.model_id or request.model or "gemini-flash")
        cache_key = self._reference_cache_key(source, metadata, model.id)

        with self._lock:
            cached = self._reference_cache.get(cache_key)
            if cached is not None and self._clock() - cached[0] < REFERENCE_CACHE_TTL:
                self._log.info("references_cache_hit", model=model.id)
                return cached[1]

        started = self._clock()
        prompt = build_references_prompt(source, metadata)
        candidates = [model]
        if model.id != _GPT_FLAG_MODEL_ID:
            candidates.append(get_model_by_id(_GPT_FLAG_MODEL_ID))

        references: list[dict[str, object]] | None = None
        raw_response = ""
        used = model
        for candidate in candidates:
            try:
                raw_response = self._generate(
                    candidate,
                    prompt,
                    max_tokens=REFERENCES_MAX_TOKENS,
                    temperature=0.3 if candidate.provider == "anthropic" else 0.2,
                    json_output=True,
                )
                references = parse_references(raw_response)
            except (LlmApiError, LlmAuthError, LlmProcessingError) as exc:
                self._log.warning(
                    "references_model_failed", model=candidate.id, error=str(exc)
                )
                continue
            used = candidate
            break

        if references is None:
            references = [_fallback_reference(metadata)]

        response: dict[str, object] = {
            "references": references,
            "rawPrompt": prompt,
            "rawResponse": raw_response,
            "citationStyle": "chicago",
            "modelUsed": used.name,
            "processingTime": round(self._clock() - started, 3),
        }
        with self._lock:
            self._reference_cache[cache_key] = (self._clock(), response)
        return response

    def _character_sketch(self, metadata: DocumentMetadata) -> dict[str, str | None]:
        """Sketch the author of a source once per author and date."""
        cache_key = f"{metadata.author}-{metadata.date}"
        with self._lock:
            cached = self._character_cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            raw_response = self._generate(
                get_model_by_id(CHARACTER_MODEL_ID),
                build_character_sketch_prompt(metadata),
                max_tokens=ROLEPLAY_MAX_TOKENS,
                temperature=0.6,
            )
        except (LlmApiError, LlmAuthError) as exc:
            self._log.warning("character_sketch_failed", error=str(exc))
            return {
                "sketch": FALLBACK_CHARACTER_SKETCH,
                "emoji": FALLBACK_AUTHOR_EMOJI,
                "birthYear": None,
                "deathYear": None,
                "birthplace": None,
            }

        sketch = parse_character_sketch(raw_response)
        if not sketch["emoji"]:
            sketch["emoji"] = FALLBACK_AUTHOR_EMOJI
        with self._lock:
            self._character_cache[cache_key] = sketch
        return sketch

    def roleplay(self, request: RoleplayRequest) -> dict[str, object]:
        """Answer in the voice of the source's author.

        With ``initialize`` set, only the character sketch is prepared.
        Gemini failures are retried once on gpt-4o-mini and the reply is
        marked as coming from the fallback model.
        """
        if not request.source or request.metadata is None or request.metadata.is_empty():
            msg = "Missing required fields"
            raise RequestValidationError(msg)
        metadata = request.metadata
        character = self._character_sketch(metadata)

        if request.initialize:
            return {
                "response": "Well?",
                "characterSketch": character["sketch"],
                "authorEmoji": character["emoji"],
                "birthYear": character["birthYear"],
                "deathYear": character["deathYear"],
                "birthplace": character["birthplace"],
                "rawPrompt": "Character sketch initialization",
                "rawResponse": "Roleplay initialized",
            }

        if not request.message:
            msg = "Missing required fields"
            raise RequestValidationError(msg)

        prompt = build_roleplay_prompt(
            request.source,
            metadata,
            character["sketch"] or FALLBACK_CHARACTER_SKETCH,
            [(turn.role, turn.content) for turn in request.conversation],
            request.message,
        )
        model = get_model_by_id(request.model)
        try:
            raw_response = self._generate(
                model, prompt, max_tokens=ROLEPLAY_MAX_TOKENS, temperature=0.7
            )
            reply = raw_response.strip()
        except (LlmApiError, LlmAuthError) as exc:
            if model.provider != "google":
                raise
            self._log.warning("roleplay_gemini_failed", error=str(exc))
            raw_response = self._generate(
                get_model_by_id(_GPT_FLAG_MODEL_ID),
                prompt,
                max_tokens=ROLEPLAY_MAX_TOKENS,
                temperature=0.7,
            )
            reply = raw_response.strip() + ROLEPLAY_FALLBACK_NOTE

        return {
            "response": reply,
            "characterSketch": character["sketch"],
            "authorEmoji": character["emoji"],
            "rawPrompt": prompt,
            "rawResponse": raw_response,
        }

    def translate(self, request: TranslationRequest) -> dict[str, object]:
        """Translate or modernize a source with the requested style."""
        if not request.source:
            msg = "Missing source text"
            raise RequestValidationError(msg)

        model = get_model_by_id(request.model_id)
        prompt = build_translation_prompt(
            request.source,
            request.metadata,
            target_language=request.target_language,
            translation_scope=request.translation_scope,
            explanation_level=request.explanation_level,
            literal_to_poetic=request.literal_to_poetic,
            preserve_line_breaks=request.preserve_line_breaks,
            include_alternatives=request.include_alternatives,
            is_continuation=request.is_continuation,
            continuation_context=request.continuation_context,
        )
        raw_response = self._generate(
            model,
            prompt,
            system_instruction=TRANSLATOR_SYSTEM_INSTRUCTION,
            max_tokens=8192 if model.provider == "google" else TRANSLATION_MAX_TOKENS,
            temperature=0.3,
        )

        return {
            "translation": raw_response.strip(),
            "rawPrompt": prompt,
            "rawResponse": raw_response,
            "modelUsed": model.name,
            "targetLanguage": language_name(request.target_language),
            "translationScope": request.translation_scope,
            "explanationLevel": request.explanation_level,
        }

    def highlight_segments(self, request: HighlightRequest) -> dict[str, object]:
        """Find the passages of a text that best match a query.

        Gemini runs cooler with a larger budget and falls back to
        gpt-4o-mini if the call fails. Passages the model paraphrased
        instead of copying are dropped.

        Raises:
            LlmProcessingError: If the response holds no segment list.
        """
        content, query = request.require_fields()
        model = get_model_by_id(request.model_id)
        prompt = build_highlight_prompt(content, query, request.num_segments)

        if model.provider == "google":
            try:
                raw_response = self._generate(
                    model, prompt, max_tokens=8000, temperature=0.1, json_output=True
                )
            except (LlmApiError, LlmAuthError) as exc:
                self._log.warning("highlight_gemini_failed", error=str(exc))
                raw_response = self._generate(
                    get_model_by_id(_GPT_FLAG_MODEL_ID),
                    prompt,
                    max_tokens=HIGHLIGHT_MAX_TOKENS,
                    temperature=0.2,
                    json_output=True,
                )
        else:
            raw_response = self._generate(
                model,
                prompt,
                max_tokens=HIGHLIGHT_MAX_TOKENS,
                temperature=0.2,
                json_output=True,
            )

        segments = parse_highlight_segments(raw_response, content, request.num_segments)
        return {
            "segments": segments,
            "query": query,
            "totalSegments": len(segments),
            "rawPrompt": prompt,
            "rawResponse": raw_response,
        }
