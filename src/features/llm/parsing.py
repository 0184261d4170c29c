"""Parsers turning raw LLM output into response payloads."""

from __future__ import annotations

import re
from urllib.parse import quote_plus

import structlog

from src.data_model import AnalysisResult
from src.features.llm.errors import LlmProcessingError
from src.features.llm.json_utils import parse_json_object


logger = structlog.get_logger()

FALLBACK_SUMMARY = "A historical document requiring analysis."
FALLBACK_ANALYSIS = "This document relates to the stated research goals."
FALLBACK_QUESTIONS: tuple[str, ...] = (
    "What was the historical context of this document?",
    "How does this document relate to the author's other work?",
    "What biases or perspectives might be present in this source?",
)

_SUMMARY_RE = re.compile(r"SUMMARY:\s*(.*?)(?=PRELIMINARY ANALYSIS:|FOLLOW-UP|$)", re.S)
_ANALYSIS_RE = re.compile(r"PRELIMINARY ANALYSIS:\s*(.*?)(?=FOLLOW-UP|$)", re.S)
_QUESTIONS_RE = re.compile(r"FOLLOW-UP QUESTIONS:\s*(.*)$", re.S)
_NUMBERED_LINE_RE = re.compile(r"^\s*\d+[.)]\s*(.+?)\s*$", re.M)


def _clean(value: str) -> str:
    return value.strip().strip("*").strip()


def parse_analysis_response(text: str) -> AnalysisResult:
    """Parse the labelled plain-text preliminary analysis format.

    Each section falls back to a generic placeholder when the model
    omits it, so the result is always renderable. At most three
    numbered follow-up questions are kept; missing ones are padded.

    Args:
        text: Raw model response.

    Returns:
        Parsed AnalysisResult.
    """
    summary_match = _SUMMARY_RE.search(text)
    analysis_match = _ANALYSIS_RE.search(text)
    questions_match = _QUESTIONS_RE.search(text)

    questions: list[str] = []
    if questions_match:
        questions = [
            _clean(q)
            for q in _NUMBERED_LINE_RE.findall(questions_match.group(1))
            if _clean(q)
        ][:3]
    questions.extend(FALLBACK_QUESTIONS[len(questions) :])

    summary = _clean(summary_match.group(1)) if summary_match else ""
    analysis = _clean(analysis_match.group(1)) if analysis_match else ""

    return AnalysisResult(
        summary=summary or FALLBACK_SUMMARY,
        analysis=analysis or FALLBACK_ANALYSIS,
        followup_questions=questions,
    )


def parse_fallback_analysis(text: str) -> dict[str, object]:
    """Parse the JSON-format analysis used by the fallback endpoint.

    Unparseable output yields an empty mapping; the client substitutes
    its own defaults for anything missing.

    Args:
        text: Raw model response.

    Returns:
        Mapping with any of ``summary``, ``analysis``,
        ``followupQuestions``.
    """
    parsed = parse_json_object(text)
    if parsed is None:
        logger.warning(
            "fallback_analysis_unparseable",
            component="llm",
            subcomponent="parsing",
            preview=text[:200],
        )
        return {}

    result: dict[str, object] = {}
    for key in ("summary", "analysis"):
        value = parsed.get(key)
        if isinstance(value, str) and value.strip():
            result[key] = value.strip()
    questions = parsed.get("followupQuestions")
    if isinstance(questions, list):
        cleaned = [str(q).strip() for q in questions if str(q).strip()]
        if cleaned:
            result["followupQuestions"] = cleaned
    return result


def parse_metadata_response(text: str) -> dict[str, object]:
    """Parse the metadata extraction JSON object.

    Raises:
        LlmProcessingError: If no JSON object can be recovered.
    """
    parsed = parse_json_object(text)
    if parsed is None:
        msg = f"Failed to parse metadata response as JSON: {text[:200]}"
        raise LlmProcessingError(msg)
    return parsed


def parse_draft_summary(text: str, content: str) -> dict[str, object]:
    """Parse a structured draft summary.

    When the model output cannot be parsed, the whole draft is returned
    as a single section so the caller still has something to show.

    Args:
        text: Raw model response.
        content: The draft text that was summarized.

    Returns:
        Mapping with ``overallSummary`` and ``sections``.
    """
    parsed = parse_json_object(text)
    if parsed is None or not isinstance(parsed.get("sections"), list):
        logger.warning(
            "draft_summary_unparseable",
            component="llm",
            subcomponent="parsing",
            preview=text[:200],
        )
        return {
            "overallSummary": "Unable to generate a structured summary for this draft.",
            "sections": [
                {
                    "id": "section-1",
                    "title": "Full Draft",
                    "summary": "The complete draft text.",
                    "fullText": content,
                }
            ],
        }

    sections: list[dict[str, str]] = []
    raw_sections: list[object] = parsed["sections"]  # type: ignore[assignment]
    for index, raw in enumerate(raw_sections, 1):
        if not isinstance(raw, dict):
            continue
        sections.append(
            {
                "id": str(raw.get("id") or f"section-{index}"),
                "title": str(raw.get("title") or f"Section {index}"),
                "summary": str(raw.get("summary") or ""),
                "fullText": str(raw.get("fullText") or ""),
            }
        )

    return {
        "overallSummary": str(parsed.get("overallSummary") or ""),
        "sections": sections,
    }


DEFAULT_RELIABILITY = "Reliability assessment not available for this source."
SCHOLAR_SEARCH_URL = "https://scholar.google.com/scholar?q="
_REFERENCE_TYPES = frozenset({"book", "article", "archive", "other"})


def _importance(value: object) -> int:
    try:
        number = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return 3
    return min(max(number, 1), 5)


def normalize_reference(raw: dict[str, object]) -> dict[str, object]:
    """Fill defaults for a suggested reference and attach a search link."""
    author = str(raw.get("author") or "").strip()
    title = str(raw.get("title") or "").strip()
    kind = str(raw.get("type") or "other").strip().lower()
    terms = " ".join(part for part in (author, *title.split()) if part)
    return {
        **raw,
        "title": title,
        "author": author,
        "citation": str(raw.get("citation") or "").strip(),
        "relevance": str(raw.get("relevance") or "").strip(),
        "reliability": str(raw.get("reliability") or "").strip() or DEFAULT_RELIABILITY,
        "type": kind if kind in _REFERENCE_TYPES else "other",
        "importance": _importance(raw.get("importance")),
        "url": SCHOLAR_SEARCH_URL + quote_plus(terms),
    }


def parse_references(text: str) -> list[dict[str, object]]:
    """Parse and normalize a suggested references JSON object.

    Raises:
        LlmProcessingError: If no ``references`` list can be recovered.
    """
    parsed = parse_json_object(text)
    if parsed is None or not isinstance(parsed.get("references"), list):
        msg = f"Failed to parse references response: {text[:200]}"
        raise LlmProcessingError(msg)
    raw_references: list[object] = parsed["references"]  # type: ignore[assignment]
    return [normalize_reference(r) for r in raw_references if isinstance(r, dict)]


_SKETCH_FIELD_RE = re.compile(
    r"^\s*\**(EMOJI|BIRTH_YEAR|DEATH_YEAR|BIRTHPLACE)\**\s*:\**\s*(.*?)\s*$", re.M
)


def parse_character_sketch(text: str) -> dict[str, str | None]:
    """Split a character sketch into prose and its labelled fields.

    Returns:
        Mapping with ``sketch``, ``emoji``, ``birthYear``, ``deathYear``
        and ``birthplace``. Fields answered with ``Unknown`` or left out
        are None.
    """
    fields: dict[str, str | None] = {
        "EMOJI": None,
        "BIRTH_YEAR": None,
        "DEATH_YEAR": None,
        "BIRTHPLACE": None,
    }
    for label, value in _SKETCH_FIELD_RE.findall(text):
        value = value.strip().strip("[]").strip()
        fields[label] = None if not value or value.lower() == "unknown" else value

    sketch = _SKETCH_FIELD_RE.sub("", text).strip()
    return {
        "sketch": sketch,
        "emoji": fields["EMOJI"],
        "birthYear": fields["BIRTH_YEAR"],
        "deathYear": fields["DEATH_YEAR"],
        "birthplace": fields["BIRTHPLACE"],
    }


def _score(value: object) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    return min(max(number, 0.0), 1.0)


def parse_highlight_segments(
    text: str, content: str, num_segments: int
) -> list[dict[str, object]]:
    """Parse highlighted passages and keep the ones found in the content.

    Scores are clamped to 0..1 and segments are ranked best first. Only
    the top ``num_segments`` are considered, and any whose text does not
    occur verbatim in ``content`` is dropped. Offsets are recomputed from
    the content rather than trusted from the model.

    Raises:
        LlmProcessingError: If no ``segments`` list can be recovered.
    """
    parsed = parse_json_object(text)
    if parsed is None or not isinstance(parsed.get("segments"), list):
        msg = f"Failed to parse highlight response: {text[:200]}"
        raise LlmProcessingError(msg)

    raw_segments: list[object] = parsed["segments"]  # type: ignore[assignment]
    candidates = [
        {
            "text": str(raw.get("text") or ""),
            "score": _score(raw.get("score")),
            "explanation": str(raw.get("explanation") or ""),
        }
        for raw in raw_segments
        if isinstance(raw, dict)
    ]
    candidates.sort(key=lambda s: s["score"], reverse=True)  # type: ignore[arg-type, return-value]

    segments: list[dict[str, object]] = []
    for index, segment in enumerate(candidates[:num_segments], 1):
        passage = str(segment["text"])
        start = content.find(passage) if passage else -1
        if start < 0:
            logger.debug(
                "highlight_segment_not_found",
                component="llm",
                subcomponent="parsing",
                preview=passage[:80],
            )
            continue
        segments.append(
            {
                "id": f"segment-{index}",
                **segment,
                "startIndex": start,
                "endIndex": start + len(passage),
            }
        )
    return segments
