"""Unit tests for the Anthropic messages client."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import anthropic
import httpx
import pytest

from src.features.llm.anthropic_client import AnthropicMessagesClient
from src.features.llm.errors import LlmApiError


_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _message(*blocks: SimpleNamespace) -> SimpleNamespace:
    return SimpleNamespace(content=list(blocks))


def _text(value: str) -> SimpleNamespace:
    return SimpleNamespace(type="text", text=value)


def _make_client() -> tuple[AnthropicMessagesClient, MagicMock]:
    sdk = MagicMock()
    sdk.messages.create.return_value = _message(_text("Narrative"))
    return AnthropicMessagesClient(api_key="test-key", client=sdk), sdk


class TestAnthropicMessagesClient:
    """Tests for AnthropicMessagesClient.generate_content."""

    def test_returns_first_text_block(self) -> None:
        """Should return the text of the first text block."""
        client, sdk = _make_client()
        sdk.messages.create.return_value = _message(
            SimpleNamespace(type="thinking", text=""), _text("Narrative")
        )

        assert client.generate_content("Prompt") == "Narrative"

    def test_default_max_tokens(self) -> None:
        """Should send a default token limit, which the API requires."""
        client, sdk = _make_client()

        client.generate_content("Prompt")

        kwargs = sdk.messages.create.call_args[1]
        assert kwargs["max_tokens"] == 1500
        assert kwargs["messages"] == [{"role": "user", "content": "Prompt"}]
        assert "system" not in kwargs
        assert "temperature" not in kwargs

    def test_sends_system_and_temperature(self) -> None:
        """Should pass system prompt and temperature through."""
        client, sdk = _make_client()

        client.generate_content(
            "Prompt", system_instruction="Be brief", temperature=0.7, max_tokens=200
        )

        kwargs = sdk.messages.create.call_args[1]
        assert kwargs["system"] == "Be brief"
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 200

    def test_status_error_raises_api_error(self) -> None:
        """Should wrap APIStatusError with its status code."""
        client, sdk = _make_client()
        sdk.messages.create.side_effect = anthropic.APIStatusError(
            "overloaded",
            response=httpx.Response(529, request=_REQUEST),
            body=None,
        )

        with pytest.raises(LlmApiError) as exc_info:
            client.generate_content("Prompt")

        assert exc_info.value.status_code == 529

    def test_connection_error_raises_api_error(self) -> None:
        """Should wrap connection failures."""
        client, sdk = _make_client()
        sdk.messages.create.side_effect = anthropic.APIConnectionError(request=_REQUEST)

        with pytest.raises(LlmApiError, match="request failed"):
            client.generate_content("Prompt")

    def test_no_text_block_raises_api_error(self) -> None:
        """Should raise when the response carries no text."""
        client, sdk = _make_client()
        sdk.messages.create.return_value = _message()

        with pytest.raises(LlmApiError, match="No text block"):
            client.generate_content("Prompt")
