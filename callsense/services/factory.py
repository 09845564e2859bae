"""Factories for runtime provider selection."""

from __future__ import annotations

from typing import Optional

from ..config import Settings, get_settings
from .providers.base import AnalysisProvider, TranscriptionProvider
from .providers.chat_completions import ChatCompletionsProvider
from .providers.dummy import DummyProvider
from .providers.generate_content import GenerateContentProvider


class ServiceConfigurationError(ValueError):
    """Raised when an unknown backend is requested."""


def _normalise(name: Optional[str]) -> str:
    if not name:
        return ""
    return name.strip().lower()


def resolve_transcription_provider(
    name: Optional[str] = None, settings: Optional[Settings] = None
) -> TranscriptionProvider:
    settings = settings or get_settings()
    backend = _normalise(name or settings.transcription_provider)
    if backend == "dummy":
        return DummyProvider()
    if backend in {"chat", "openai"}:
        return ChatCompletionsProvider(
            model=settings.transcription_model,
            base_url=settings.chat_base_url,
            api_key=settings.chat_api_key,
            timeout=settings.request_timeout,
        )
    if backend == "gemini":
        return GenerateContentProvider(
            model=settings.transcription_model,
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            timeout=settings.request_timeout,
        )
    raise ServiceConfigurationError(f"Unknown transcription provider: {name or backend}")


def resolve_analysis_provider(
    name: Optional[str] = None, settings: Optional[Settings] = None
) -> AnalysisProvider:
    settings = settings or get_settings()
    backend = _normalise(name or settings.analysis_provider)
    if backend == "dummy":
        return DummyProvider()
    if backend in {"chat", "openai"}:
        return ChatCompletionsProvider(
            model=settings.analysis_model,
            base_url=settings.chat_base_url,
            api_key=settings.chat_api_key,
            timeout=settings.request_timeout,
        )
    if backend == "gemini":
        return GenerateContentProvider(
            model=settings.analysis_model,
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            timeout=settings.request_timeout,
        )
    raise ServiceConfigurationError(f"Unknown analysis provider: {name or backend}")


__all__ = [
    "ServiceConfigurationError",
    "resolve_analysis_provider",
    "resolve_transcription_provider",
]
