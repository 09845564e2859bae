"""Provider capability interfaces, one implementation per wire shape."""

from __future__ import annotations

import abc


class TranscriptionProvider(abc.ABC):
    """Turn an inline, base64 encoded audio payload into text."""

    @abc.abstractmethod
    async def transcribe(
        self,
        prompt: str,
        audio_base64: str,
        audio_format: str,
        mime_type: str,
    ) -> str:
        """Return the first candidate's text.

        Non-success responses raise :class:`~callsense.services.errors.ProviderHTTPError`.
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources held by the provider."""


class AnalysisProvider(abc.ABC):
    """Run a text-only instruction prompt against a transcript."""

    @abc.abstractmethod
    async def analyze(self, instructions: str, transcript: str) -> str:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources held by the provider."""


ANALYSIS_ACKNOWLEDGEMENT = (
    "Understood. I will analyze the sales call transcript and return a detailed JSON "
    "analysis based on the frameworks you provided."
)


def analysis_request_text(transcript: str) -> str:
    return f"Analyze this sales call transcript:\n\n{transcript}"


__all__ = [
    "ANALYSIS_ACKNOWLEDGEMENT",
    "AnalysisProvider",
    "TranscriptionProvider",
    "analysis_request_text",
]
