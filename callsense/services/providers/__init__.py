"""AI provider implementations."""

from .base import AnalysisProvider, TranscriptionProvider
from .dummy import DummyProvider

__all__ = ["AnalysisProvider", "DummyProvider", "TranscriptionProvider"]
