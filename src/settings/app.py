"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    anthropic_api_key: str | None = Field(
        default=None, validation_alias="ANTHROPIC_API_KEY"
    )
    google_api_key: str | None = Field(default=None, validation_alias="GOOGLE_API_KEY")
    api_url: str = Field(
        default="http://127.0.0.1:5000", validation_alias="SOURCELENS_API_URL"
    )
    storage_path: Path = Field(
        default=Path.home() / ".sourcelens" / "storage.json",
        validation_alias="SOURCELENS_STORAGE_PATH",
    )
    request_timeout: float = Field(
        default=120.0, gt=0, validation_alias="SOURCELENS_REQUEST_TIMEOUT"
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    def api_key_for_provider(self, provider: str) -> str | None:
        """Return the API key for a provider identifier."""
        keys = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
        }
        return keys.get(provider)


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
