"""Factory for creating LLM clients for a configured model."""

from collections.abc import Callable

import structlog

from src.features.llm.errors import LlmAuthError
from src.features.llm.models import ModelConfig
from src.features.llm.protocols import LlmClient
from src.settings import AppSettings


logger = structlog.get_logger()

ClientFactory = Callable[[ModelConfig], LlmClient]

_KEY_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
}


def create_llm_client(
    model: ModelConfig,
    settings: AppSettings,
    *,
    timeout: float | None = None,
) -> LlmClient:
    """Create an LLM client for the provider that serves ``model``.

    Args:
        model: Resolved model configuration.
        settings: Application settings holding provider API keys.
        timeout: Per-request timeout; defaults to the settings value.

    Returns:
        An LlmClient implementation ready for use.

    Raises:
        LlmAuthError: If the provider has no API key configured.
    """
    log = logger.bind(component="llm", subcomponent="factory")

    api_key = settings.api_key_for_provider(model.provider)
    if not api_key:
        msg = f"No {model.provider} credentials configured (need {_KEY_ENV_VARS[model.provider]})"
        raise LlmAuthError(msg)

    effective_timeout = timeout or settings.request_timeout

    if model.provider == "openai":
        from src.features.llm.openai_client import OpenAiChatClient

        client: LlmClient = OpenAiChatClient(
            api_key=api_key, model=model.api_model, timeout=effective_timeout
        )
    elif model.provider == "google":
        from src.features.llm.gemini_client import GeminiApiKeyClient

        client = GeminiApiKeyClient(
            api_key=api_key, model=model.api_model, timeout=effective_timeout
        )
    else:
        from src.features.llm.anthropic_client import AnthropicMessagesClient

        client = AnthropicMessagesClient(
            api_key=api_key, model=model.api_model, timeout=effective_timeout
        )

    log.info("llm_client_created", provider=model.provider, model=model.api_model)
    return client


def settings_client_factory(settings: AppSettings) -> ClientFactory:
    """Bind settings into a one-argument client factory.

    Args:
        settings: Application settings holding provider API keys.

    Returns:
        Callable mapping a ModelConfig to a ready client.
    """

    def _factory(model: ModelConfig) -> LlmClient:
        return create_llm_client(model, settings)

    return _factory
