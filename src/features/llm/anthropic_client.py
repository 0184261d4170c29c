"""Anthropic messages API client."""

import anthropic
import structlog

from src.features.llm.errors import LlmApiError


logger = structlog.get_logger()

_DEFAULT_MAX_TOKENS = 1500


class AnthropicMessagesClient:
    """LlmClient implementation backed by the Anthropic SDK."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-haiku-latest",
        timeout: float = 60.0,
        client: anthropic.Anthropic | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Anthropic API key.
            model: Anthropic model identifier.
            timeout: Per-request timeout in seconds.
            client: Pre-built SDK client, mainly for tests.
        """
        self.model = model
        self._client = client or anthropic.Anthropic(api_key=api_key, timeout=timeout)
        self._log = logger.bind(component="llm", subcomponent="anthropic")

    def generate_content(
        self,
        prompt: str,
        system_instruction: str | None = None,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,  # noqa: ARG002
    ) -> str:
        """Send a messages request and return the first text block.

        The messages API has no JSON mode; callers parse JSON from text.

        Raises:
            LlmApiError: On SDK errors or a response without text.
        """
        kwargs: dict[str, object] = {
            "model": self.model,
            "max_tokens": max_tokens or _DEFAULT_MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_instruction:
            kwargs["system"] = system_instruction
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = self._client.messages.create(**kwargs)  # type: ignore[call-overload]
        except anthropic.APIStatusError as exc:
            self._log.warning("anthropic_api_error", status=exc.status_code)
            msg = f"Anthropic API returned {exc.status_code}"
            raise LlmApiError(msg, status_code=exc.status_code) from exc
        except anthropic.AnthropicError as exc:
            msg = f"Anthropic request failed: {exc}"
            raise LlmApiError(msg) from exc

        for block in response.content:
            if getattr(block, "type", None) == "text" and block.text:
                return str(block.text)

        msg = "No text block in Anthropic response"
        raise LlmApiError(msg)
