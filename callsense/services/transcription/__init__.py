"""Transcription services."""

from .client import TranscriptionClient, build_prompt

__all__ = ["TranscriptionClient", "build_prompt"]
