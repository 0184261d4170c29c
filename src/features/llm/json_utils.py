"""Shared JSON parsing utilities for LLM response handling.

Provides robust parsing of JSON objects from LLM output, handling
common issues like markdown fences, invalid escape sequences, and
extra text around the JSON payload.
"""

from __future__ import annotations

import json
import re


def fix_escape_sequences(text: str) -> str:
    """Fix invalid JSON escape sequences in LLM output.

    LLMs sometimes produce backslash sequences like ``\\_`` that are
    invalid in JSON strings. This replaces lone backslashes with
    double-backslashes where they don't form a valid JSON escape.

    Args:
        text: Raw text potentially containing invalid escapes.

    Returns:
        Text with invalid escape sequences fixed.
    """
    return re.sub(r'(?<!\\)\\(?!["\\/bfnrtu])', r"\\\\", text)


def try_parse_json_object(text: str) -> dict[str, object] | None:
    """Try to parse text as a JSON object, with escape-sequence fallback.

    Args:
        text: Raw JSON text from LLM response.

    Returns:
        Parsed dict if successful, None otherwise.
    """
    for candidate in (text, fix_escape_sequences(text)):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def extract_first_json_object(text: str) -> str | None:
    """Extract the first balanced ``{...}`` block from text.

    Braces inside JSON strings are skipped so prose quoted in a value
    does not end the block early.

    Args:
        text: Raw text potentially containing a JSON object.

    Returns:
        Extracted JSON object string, or None if no balanced pair found.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def strip_markdown_fences(text: str) -> str:
    """Strip markdown code fences from LLM response text.

    Args:
        text: Raw text potentially wrapped in code fences.

    Returns:
        Text with code fences removed.
    """
    text = text.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        if first_newline != -1:
            text = text[first_newline + 1 :]
        if text.endswith("```"):
            text = text[: -len("```")]
        text = text.strip()
    return text


def parse_json_object(text: str) -> dict[str, object] | None:
    """Parse the JSON object carried by an LLM response.

    Tries the fence-stripped text first, then the first balanced object
    found inside it.

    Args:
        text: Raw text from LLM response.

    Returns:
        Parsed dict, or None when no object can be recovered.
    """
    stripped = strip_markdown_fences(text)
    parsed = try_parse_json_object(stripped)
    if parsed is not None:
        return parsed

    extracted = extract_first_json_object(stripped)
    if extracted and extracted != stripped:
        return try_parse_json_object(extracted)
    return None
