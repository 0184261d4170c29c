"""SourceLens HTTP API."""

from src.features.api.app import create_app
from src.features.api.service import SourceLensService


__all__ = ["SourceLensService", "create_app"]
