"""Decode uploaded recordings into mono float PCM."""

from __future__ import annotations

import shutil
import subprocess
import wave
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

from ...logging import get_logger
from ...services.errors import DecodeError, snippet
from ...utils.audio import ensure_mono, read_wave_bytes

LOGGER = get_logger(__name__)

# Providers accept these container hints; m4a and mp4 audio are sent as mp3.
_FORMAT_FOR_EXTENSION = {
    "mp3": "mp3",
    "wav": "wav",
    "webm": "webm",
    "m4a": "mp3",
    "ogg": "ogg",
    "mp4": "mp3",
}

_MIME_FOR_FORMAT = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "webm": "audio/webm",
    "ogg": "audio/ogg",
}


def audio_format_for(file_name: str) -> str:
    extension = Path(file_name).suffix.lower().lstrip(".")
    return _FORMAT_FOR_EXTENSION.get(extension, "mp3")


def mime_type_for(file_name: str) -> str:
    return _MIME_FOR_FORMAT[audio_format_for(file_name)]


def _looks_like_wav(data: bytes) -> bool:
    return len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WAVE"


def _resolve_binary(binary: str) -> Optional[str]:
    found = shutil.which(binary or "ffmpeg")
    if found:
        return found
    candidate = Path(binary)
    if candidate.exists():
        return str(candidate)
    return None


def _decode_with_ffmpeg(data: bytes, sample_rate: int, binary: str) -> np.ndarray:
    executable = _resolve_binary(binary)
    if executable is None:
        raise DecodeError(
            f"FFmpeg binary '{binary}' was not found on PATH; only PCM WAV uploads can be "
            "decoded without it. Convert the recording to WAV and upload it again."
        )

    command = [
        executable,
        "-hide_banner",
        "-loglevel",
        "error",
        "-i",
        "pipe:0",
        "-vn",
        "-f",
        "s16le",
        "-acodec",
        "pcm_s16le",
        "-ac",
        "1",
        "-ar",
        str(sample_rate),
        "pipe:1",
    ]
    LOGGER.info("Decoding %d bytes with %s", len(data), executable)
    try:
        completed = subprocess.run(  # noqa: S603 - required to spawn ffmpeg
            command,
            input=data,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
        )
    except OSError as exc:
        raise DecodeError(f"Failed to launch FFmpeg binary '{executable}'") from exc

    if completed.returncode != 0:
        detail = snippet(completed.stderr.decode("utf-8", errors="replace"))
        raise DecodeError(
            "Could not decode the audio file. Please re-upload it in a different format "
            f"(WAV or MP3). {detail}".strip()
        )

    samples = np.frombuffer(completed.stdout, dtype="<i2").astype(np.float32) / 32768.0
    return samples.reshape(-1, 1)


def decode_audio(
    data: bytes,
    *,
    sample_rate: int,
    ffmpeg_binary: str = "ffmpeg",
) -> Tuple[np.ndarray, int]:
    """Return ``(mono_frames, source_sample_rate)`` for an encoded recording.

    PCM WAV is decoded in-process at its native rate. Any other container is
    decoded by FFmpeg, which also performs the resampling to ``sample_rate``.
    """

    if not data:
        raise DecodeError("The audio file is empty. Please upload a recording.")

    if _looks_like_wav(data):
        try:
            frames, source_rate = read_wave_bytes(data)
        except (wave.Error, ValueError, EOFError) as exc:
            LOGGER.info("In-process WAV decode failed (%s); trying FFmpeg", exc)
        else:
            mono = ensure_mono(frames)
            if mono.shape[0] == 0:
                raise DecodeError("The audio file contains no samples.")
            return mono, source_rate

    mono = _decode_with_ffmpeg(data, sample_rate, ffmpeg_binary)
    if mono.shape[0] == 0:
        raise DecodeError("The audio file contains no samples.")
    return mono, sample_rate


__all__ = ["audio_format_for", "decode_audio", "mime_type_for"]
