"""Split recordings into provider-safe, independently decodable WAV segments."""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Callable, Optional

from ...config import Settings, get_settings
from ...data.models import AudioSegment, SegmentationResult
from ...logging import get_logger
from ...services.errors import SegmentationError
from ...utils.audio import (
    PCM16_SAMPLE_WIDTH,
    WAV_HEADER_BYTES,
    encode_wav,
    resample,
    to_pcm16,
)
from .decode import decode_audio

LOGGER = get_logger(__name__)

ProgressCallback = Callable[[int], None]


@dataclass
class SegmentationOptions:
    target_segment_bytes: int
    sample_rate: int = 16_000
    min_segment_seconds: float = 30.0
    max_segment_seconds: float = 1200.0
    ffmpeg_binary: str = "ffmpeg"

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SegmentationOptions":
        settings = settings or get_settings()
        return cls(
            target_segment_bytes=settings.target_segment_bytes,
            sample_rate=settings.sample_rate,
            min_segment_seconds=settings.min_segment_seconds,
            max_segment_seconds=settings.max_segment_seconds,
            ffmpeg_binary=settings.ffmpeg_binary,
        )

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * PCM16_SAMPLE_WIDTH

    def validate(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        if self.min_segment_seconds <= 0 or self.max_segment_seconds < self.min_segment_seconds:
            raise ValueError("segment seconds must satisfy 0 < min <= max")
        budget_seconds = (self.target_segment_bytes - WAV_HEADER_BYTES) / self.bytes_per_second
        if budget_seconds < self.min_segment_seconds:
            raise ValueError(
                f"target_segment_bytes={self.target_segment_bytes} cannot hold "
                f"{self.min_segment_seconds}s of {self.sample_rate} Hz audio"
            )


def segment_seconds(options: SegmentationOptions) -> float:
    """Segment length derived from the byte budget, clamped to the allowed range."""

    budget = math.floor((options.target_segment_bytes - WAV_HEADER_BYTES) / options.bytes_per_second)
    return min(max(budget, options.min_segment_seconds), options.max_segment_seconds)


class _Progress:
    def __init__(self, callback: Optional[ProgressCallback]) -> None:
        self._callback = callback
        self._last = -1

    def report(self, value: float) -> None:
        value = min(max(int(round(value)), 0), 100)
        if self._callback is None or value <= self._last:
            return
        self._last = value
        self._callback(value)


def prepare(
    source: bytes,
    options: Optional[SegmentationOptions] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> SegmentationResult:
    """Decode ``source`` and serialise it into one or more WAV segments."""

    options = options or SegmentationOptions.from_settings()
    options.validate()
    progress = _Progress(on_progress)
    progress.report(0)

    frames, source_rate = decode_audio(
        source,
        sample_rate=options.sample_rate,
        ffmpeg_binary=options.ffmpeg_binary,
    )
    progress.report(30)

    mono = resample(frames, source_rate, options.sample_rate)
    del frames
    total_frames = mono.shape[0]
    duration = total_frames / float(options.sample_rate)
    progress.report(40)

    chunk_seconds = segment_seconds(options)
    frames_per_segment = max(int(chunk_seconds * options.sample_rate), 1)
    count = max(math.ceil(total_frames / frames_per_segment), 1)
    kind = "single" if count == 1 else "chunked"
    LOGGER.info(
        "Preparing %.1fs of audio as %d segment(s) of up to %ss at %d Hz",
        duration,
        count,
        chunk_seconds,
        options.sample_rate,
    )

    segments = []
    for index in range(count):
        start = index * frames_per_segment
        window = mono[start : start + frames_per_segment]
        data = encode_wav(to_pcm16(window), options.sample_rate)
        if len(data) > options.target_segment_bytes:
            raise SegmentationError(
                f"Segment {index + 1} is {len(data)} bytes, above the "
                f"{options.target_segment_bytes} byte limit"
            )
        segments.append(
            AudioSegment(
                index=index,
                name=f"part-{index:03d}.wav",
                data=data,
                duration=window.shape[0] / float(options.sample_rate),
            )
        )
        progress.report(40 + 60 * (index + 1) / count)

    progress.report(100)
    return SegmentationResult(
        kind=kind,
        sample_rate=options.sample_rate,
        chunk_seconds=chunk_seconds,
        duration=duration,
        segments=segments,
    )


async def prepare_async(
    source: bytes,
    options: Optional[SegmentationOptions] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> SegmentationResult:
    """Run :func:`prepare` off the event loop so other jobs keep progressing."""

    return await asyncio.to_thread(prepare, source, options, on_progress)


__all__ = ["SegmentationOptions", "prepare", "prepare_async", "segment_seconds"]
