"""Unit tests for the OpenAI chat client."""

from unittest.mock import MagicMock

import httpx
import openai
import pytest

from src.features.llm.errors import LlmApiError
from src.features.llm.openai_client import OpenAiChatClient


_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _completion(text: str | None) -> MagicMock:
    completion = MagicMock()
    completion.choices = [MagicMock()]
    completion.choices[0].message.content = text
    return completion


def _make_client(model: str = "gpt-4o-mini") -> tuple[OpenAiChatClient, MagicMock]:
    sdk = MagicMock()
    sdk.chat.completions.create.return_value = _completion("Answer")
    return OpenAiChatClient(api_key="test-key", model=model, client=sdk), sdk


class TestOpenAiChatClient:
    """Tests for OpenAiChatClient.generate_content."""

    def test_returns_message_text(self) -> None:
        """Should return the first choice's content."""
        client, _ = _make_client()

        assert client.generate_content("Question") == "Answer"

    def test_builds_messages_with_system_instruction(self) -> None:
        """Should send the system instruction before the user prompt."""
        client, sdk = _make_client()

        client.generate_content("Question", system_instruction="Extract metadata")

        messages = sdk.chat.completions.create.call_args[1]["messages"]
        assert messages == [
            {"role": "system", "content": "Extract metadata"},
            {"role": "user", "content": "Question"},
        ]

    def test_sends_options(self) -> None:
        """Should map temperature, token limit and JSON mode."""
        client, sdk = _make_client()

        client.generate_content("Q", temperature=0.4, max_tokens=1000, json_output=True)

        kwargs = sdk.chat.completions.create.call_args[1]
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.4
        assert kwargs["max_completion_tokens"] == 1000
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_reasoning_models_skip_temperature(self) -> None:
        """Should not send temperature to o-series models."""
        client, sdk = _make_client(model="o3-mini-2025-01-31")

        client.generate_content("Q", temperature=0.3)

        assert "temperature" not in sdk.chat.completions.create.call_args[1]

    def test_status_error_raises_api_error(self) -> None:
        """Should wrap APIStatusError with its status code."""
        client, sdk = _make_client()
        sdk.chat.completions.create.side_effect = openai.APIStatusError(
            "rate limited",
            response=httpx.Response(429, request=_REQUEST),
            body=None,
        )

        with pytest.raises(LlmApiError, match="429") as exc_info:
            client.generate_content("Q")

        assert exc_info.value.status_code == 429

    def test_connection_error_raises_api_error(self) -> None:
        """Should wrap other SDK errors without a status code."""
        client, sdk = _make_client()
        sdk.chat.completions.create.side_effect = openai.APIConnectionError(
            request=_REQUEST
        )

        with pytest.raises(LlmApiError, match="request failed") as exc_info:
            client.generate_content("Q")

        assert exc_info.value.status_code == 0

    def test_empty_content_raises_api_error(self) -> None:
        """Should reject a completion without text."""
        client, sdk = _make_client()
        sdk.chat.completions.create.return_value = _completion(None)

        with pytest.raises(LlmApiError, match="Empty text"):
            client.generate_content("Q")

    def test_no_choices_raises_api_error(self) -> None:
        """Should reject a completion without choices."""
        client, sdk = _make_client()
        completion = MagicMock()
        completion.choices = []
        sdk.chat.completions.create.return_value = completion

        with pytest.raises(LlmApiError, match="No choices"):
            client.generate_content("Q")
