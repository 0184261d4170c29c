"""Shared data models."""

from src.data_model.base import WireModel
from src.data_model.documents import (
    DEFAULT_ANALYSIS_BODY,
    DEFAULT_FOLLOWUP_QUESTIONS,
    DEFAULT_SUMMARY,
    AnalysisResult,
    DocumentMetadata,
)


__all__ = [
    "DEFAULT_ANALYSIS_BODY",
    "DEFAULT_FOLLOWUP_QUESTIONS",
    "DEFAULT_SUMMARY",
    "AnalysisResult",
    "DocumentMetadata",
    "WireModel",
]
