"""Single-segment transcription against the configured provider."""

from __future__ import annotations

import asyncio
from typing import Optional

from ...config import get_settings
from ...data.models import WAV_MIME_TYPE
from ...logging import get_logger
from ...utils.encoding import encode_audio
from ..errors import (
    EmptyResult,
    PayloadRejected,
    ProviderHTTPError,
    ProviderTimeout,
    classify_http_error,
)
from ..providers.base import TranscriptionProvider

LOGGER = get_logger(__name__)

_MIME_TO_FORMAT = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
}

BASE_PROMPT = (
    "Please transcribe this audio recording word-for-word. This is a sales call recording. "
    "Format it as a conversation with speaker labels where you can distinguish speakers. "
    "Use the actual names mentioned in the conversation for speaker labels. "
    "Include all dialogue faithfully and accurately. Do not make up or invent any content - "
    "only transcribe what you actually hear in the audio. "
    "Provide only the transcript without any additional commentary."
)


def build_prompt(segment_index: int, segment_count: int) -> str:
    """Instruction prompt, with continuity framing for multi-segment calls."""

    if segment_count <= 1:
        return BASE_PROMPT
    return (
        f"{BASE_PROMPT}\n\n"
        f"This audio is segment {segment_index + 1} of {segment_count} of one continuous "
        "sales call, split only because of upload size limits. Transcribe only what is "
        "spoken in this segment. Do not repeat or summarise content from previous "
        "segments, and do not add an introduction or closing remarks. Keep speaker "
        "labels consistent with a conversation that started before this segment."
    )


class TranscriptionClient:
    """Transcribe one prepared segment, mapping provider failures to typed errors."""

    def __init__(
        self,
        provider: TranscriptionProvider,
        max_segment_bytes: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.provider = provider
        self.max_segment_bytes = max_segment_bytes or settings.max_segment_bytes
        self.timeout = timeout or settings.request_timeout

    async def transcribe(
        self,
        segment: bytes,
        mime_hint: str = WAV_MIME_TYPE,
        segment_index: int = 0,
        segment_count: int = 1,
    ) -> str:
        if len(segment) > self.max_segment_bytes:
            raise PayloadRejected(
                f"Audio segment is too large ({len(segment)} bytes; the limit is "
                f"{self.max_segment_bytes} bytes). Re-upload the recording so it can be split "
                "into smaller segments."
            )

        prompt = build_prompt(segment_index, segment_count)
        audio_format = _MIME_TO_FORMAT.get(mime_hint.lower(), "mp3")
        encoded = encode_audio(segment)
        LOGGER.info(
            "Transcribing segment %d/%d (%d bytes, %d encoded)",
            segment_index + 1,
            segment_count,
            len(segment),
            len(encoded),
        )

        try:
            text = await asyncio.wait_for(
                self.provider.transcribe(prompt, encoded, audio_format, mime_hint),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ProviderTimeout(
                f"Transcription timed out after {self.timeout:.0f}s"
            ) from exc
        except ProviderHTTPError as exc:
            LOGGER.error("Transcription provider returned HTTP %s", exc.status_code)
            raise classify_http_error(exc, "Transcription") from exc

        text = (text or "").strip()
        if not text:
            raise EmptyResult("No transcript received from AI")
        return text


__all__ = ["BASE_PROMPT", "TranscriptionClient", "build_prompt"]
