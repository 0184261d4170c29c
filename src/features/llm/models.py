"""Model registry for the supported LLM providers."""

from dataclasses import dataclass
from typing import Literal

import structlog


logger = structlog.get_logger()

Provider = Literal["anthropic", "openai", "google"]


@dataclass(frozen=True)
class ModelConfig:
    """Configuration for a selectable model.

    Attributes:
        id: Internal identifier sent by clients.
        name: Display name.
        provider: Provider that serves the model.
        api_model: Identifier passed to the provider API.
        description: Short description for model pickers.
        max_tokens: Default output token limit.
        temperature: Default sampling temperature.
    """

    id: str
    name: str
    provider: Provider
    api_model: str
    description: str = ""
    max_tokens: int | None = None
    temperature: float | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "apiModel": self.api_model,
            "description": self.description,
            "maxTokens": self.max_tokens,
            "temperature": self.temperature,
        }


MODELS: tuple[ModelConfig, ...] = (
    ModelConfig(
        id="claude-haiku",
        name="Claude 3.5 Haiku",
        provider="anthropic",
        api_model="claude-3-5-haiku-latest",
        description="Fast and efficient for quick analyses",
        max_tokens=30000,
        temperature=0.2,
    ),
    ModelConfig(
        id="claude-sonnet",
        name="Claude 3.7 Sonnet",
        provider="anthropic",
        api_model="claude-3-7-sonnet-latest",
        description="Advanced with deeper context understanding",
        max_tokens=30000,
        temperature=0.5,
    ),
    ModelConfig(
        id="gpt-4o-mini",
        name="GPT-4o Mini",
        provider="openai",
        api_model="gpt-4o-mini",
        description="Small, inexpensive general model",
        max_tokens=16000,
        temperature=0.7,
    ),
    ModelConfig(
        id="gpt-4.1-nano",
        name="GPT-4.1 Nano",
        provider="openai",
        api_model="gpt-4.1-nano",
        description="A low-latency model",
        max_tokens=32000,
        temperature=0.3,
    ),
    ModelConfig(
        id="gpt-4.1",
        name="GPT-4.1",
        provider="openai",
        api_model="gpt-4.1-2025-04-14",
        description="Flagship OpenAI model",
        max_tokens=32000,
        temperature=0.3,
    ),
    ModelConfig(
        id="o3-mini",
        name="O3 Mini",
        provider="openai",
        api_model="o3-mini-2025-01-31",
        description="Fast reasoning model for complex analysis",
        temperature=0.3,
    ),
    ModelConfig(
        id="gemini-flash",
        name="Gemini 2.0 Flash",
        provider="google",
        api_model="gemini-2.0-flash",
        description="Process long texts with a 1M token context window",
        max_tokens=400000,
        temperature=0.2,
    ),
    ModelConfig(
        id="gemini-flash-lite",
        name="Gemini 2.0 Flash Lite",
        provider="google",
        api_model="gemini-2.0-flash-lite",
        description="The smaller version of Flash. Good all-arounder.",
        max_tokens=600000,
        temperature=0.2,
    ),
)

DEFAULT_MODEL_ID = "gemini-flash-lite"

# Identifiers sent by older clients, mapped to registry ids.
LEGACY_MODEL_MAPPING: dict[str, str] = {
    "claude": "claude-haiku",
    "gpt": "gpt-4o-mini",
    "o3-mini-2025-01-31": "o3-mini",
}


def get_models_by_provider(provider: Provider) -> list[ModelConfig]:
    """Return all registered models served by a provider."""
    return [m for m in MODELS if m.provider == provider]


def get_model_by_id(model_id: str | None) -> ModelConfig:
    """Resolve a client-supplied identifier to a model configuration.

    Legacy ids are mapped first, then the registry is searched by id and
    by API model name. Unknown identifiers resolve to the default model.

    Args:
        model_id: Registry id, legacy id, or provider API model name.

    Returns:
        The matching ModelConfig, or the default model.
    """
    log = logger.bind(component="llm", subcomponent="models")
    mapped = LEGACY_MODEL_MAPPING.get(model_id or "", model_id or "")

    for model in MODELS:
        if mapped in (model.id, model.api_model):
            log.debug("model_resolved", requested=model_id, model_id=model.id)
            return model

    log.warning("model_not_found", requested=model_id, default=DEFAULT_MODEL_ID)
    return next(m for m in MODELS if m.id == DEFAULT_MODEL_ID)
