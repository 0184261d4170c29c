"""OpenAI chat completions client."""

import openai
import structlog
from openai import OpenAI

from src.features.llm.errors import LlmApiError


logger = structlog.get_logger()

# Reasoning models reject the temperature parameter.
_NO_TEMPERATURE_PREFIXES = ("o1", "o3", "o4")


class OpenAiChatClient:
    """LlmClient implementation backed by the OpenAI SDK."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 60.0,
        client: OpenAI | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: OpenAI API key.
            model: OpenAI model identifier.
            timeout: Per-request timeout in seconds.
            client: Pre-built SDK client, mainly for tests.
        """
        self.model = model
        self._client = client or OpenAI(api_key=api_key, timeout=timeout)
        self._log = logger.bind(component="llm", subcomponent="openai")

    def generate_content(
        self,
        prompt: str,
        system_instruction: str | None = None,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
    ) -> str:
        """Send a chat completion request and return the message text.

        Raises:
            LlmApiError: On SDK errors or an empty completion.
        """
        messages: list[dict[str, str]] = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, object] = {"model": self.model, "messages": messages}
        if temperature is not None and not self.model.startswith(
            _NO_TEMPERATURE_PREFIXES
        ):
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_completion_tokens"] = max_tokens
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self._client.chat.completions.create(**kwargs)  # type: ignore[call-overload]
        except openai.APIStatusError as exc:
            self._log.warning("openai_api_error", status=exc.status_code)
            msg = f"OpenAI API returned {exc.status_code}"
            raise LlmApiError(msg, status_code=exc.status_code) from exc
        except openai.OpenAIError as exc:
            msg = f"OpenAI request failed: {exc}"
            raise LlmApiError(msg) from exc

        if not response.choices:
            msg = "No choices in OpenAI response"
            raise LlmApiError(msg)

        text = response.choices[0].message.content or ""
        if not text:
            msg = "Empty text in response"
            raise LlmApiError(msg)

        return text
