"""Unit tests for JSON recovery helpers."""

from src.features.llm.json_utils import (
    extract_first_json_object,
    fix_escape_sequences,
    parse_json_object,
    strip_markdown_fences,
    try_parse_json_object,
)


class TestJsonUtils:
    """Tests for LLM JSON recovery."""

    def test_fix_escape_sequences(self) -> None:
        """Should double lone backslashes that are not JSON escapes."""
        assert fix_escape_sequences(r'{"a": "x\_y"}') == r'{"a": "x\\_y"}'
        assert fix_escape_sequences(r'{"a": "line\nbreak"}') == r'{"a": "line\nbreak"}'

    def test_try_parse_rejects_arrays(self) -> None:
        """Should only accept JSON objects."""
        assert try_parse_json_object("[1, 2]") is None
        assert try_parse_json_object('{"a": 1}') == {"a": 1}

    def test_try_parse_uses_escape_fallback(self) -> None:
        """Should parse after fixing invalid escapes."""
        assert try_parse_json_object(r'{"a": "x\_y"}') == {"a": "x\\_y"}

    def test_extract_skips_braces_in_strings(self) -> None:
        """Should not stop at a brace inside a string value."""
        text = 'prefix {"a": "has } brace", "b": {"c": 1}} suffix'

        assert extract_first_json_object(text) == '{"a": "has } brace", "b": {"c": 1}}'

    def test_extract_unbalanced_returns_none(self) -> None:
        """Should return None when the object never closes."""
        assert extract_first_json_object('{"a": 1') is None
        assert extract_first_json_object("no braces") is None

    def test_strip_markdown_fences(self) -> None:
        """Should remove a fenced block wrapper."""
        assert strip_markdown_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_markdown_fences('  {"a": 1} ') == '{"a": 1}'

    def test_parse_json_object_end_to_end(self) -> None:
        """Should recover an object from fenced prose."""
        assert parse_json_object('```\nResult: {"a": [1, 2]}\n```') == {"a": [1, 2]}
        assert parse_json_object("nothing") is None
