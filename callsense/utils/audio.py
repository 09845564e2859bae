"""Audio processing utilities."""

from __future__ import annotations

import io
import wave
from typing import Tuple

import numpy as np

WAV_HEADER_BYTES = 44
PCM16_SAMPLE_WIDTH = 2

_SCALE_FOR_WIDTH = {
    1: 128.0,
    2: 32768.0,
    4: 2147483648.0,
}


def read_wave_bytes(data: bytes) -> Tuple[np.ndarray, int]:
    """Decode a PCM WAV container into a ``(frames, channels)`` float array."""

    with wave.open(io.BytesIO(data), "rb") as wf:
        channels = wf.getnchannels()
        sample_width = wf.getsampwidth()
        sample_rate = wf.getframerate()
        frames = wf.readframes(wf.getnframes())

    if sample_width == 1:
        # 8-bit WAV is unsigned
        samples = np.frombuffer(frames, dtype=np.uint8).astype(np.float32) - 128.0
    elif sample_width == 2:
        samples = np.frombuffer(frames, dtype="<i2").astype(np.float32)
    elif sample_width == 4:
        samples = np.frombuffer(frames, dtype="<i4").astype(np.float32)
    else:
        raise ValueError(f"Unsupported WAV sample width: {sample_width * 8} bits")

    samples /= _SCALE_FOR_WIDTH[sample_width]
    return samples.reshape(-1, channels), sample_rate


def ensure_mono(data: np.ndarray) -> np.ndarray:
    if data.ndim == 1 or data.shape[1] == 1:
        return data.reshape(-1, 1)
    return data.mean(axis=1, keepdims=True)


def resample(array: np.ndarray, sr: int, target_sr: int) -> np.ndarray:
    """Linearly resample a mono ``(frames, 1)`` array to ``target_sr``."""

    if sr == target_sr:
        return array
    mono = array[:, 0]
    length = mono.shape[0]
    if length == 0:
        return mono.reshape(0, 1)
    target_length = max(int(round(length * target_sr / sr)), 1)
    if target_length == 1:
        return np.full((1, 1), mono[0], dtype=array.dtype)
    original_positions = np.linspace(0, length - 1, num=length)
    target_positions = np.linspace(0, length - 1, num=target_length)
    resampled = np.interp(target_positions, original_positions, mono).astype(array.dtype, copy=False)
    return resampled.reshape(-1, 1)


def to_pcm16(data: np.ndarray) -> bytes:
    clipped = np.clip(data, -1.0, 1.0)
    return (clipped * 32767.0).astype("<i2").tobytes()


def encode_wav(pcm: bytes, sample_rate: int, channels: int = 1) -> bytes:
    """Wrap raw 16-bit PCM in a standalone WAV container."""

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(PCM16_SAMPLE_WIDTH)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buffer.getvalue()


def wav_duration(data: bytes) -> float:
    with wave.open(io.BytesIO(data), "rb") as wf:
        rate = wf.getframerate()
        return wf.getnframes() / float(rate) if rate else 0.0


__all__ = [
    "PCM16_SAMPLE_WIDTH",
    "WAV_HEADER_BYTES",
    "encode_wav",
    "ensure_mono",
    "read_wave_bytes",
    "resample",
    "to_pcm16",
    "wav_duration",
]
