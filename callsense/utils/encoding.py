"""Transport encoding for binary audio embedded in JSON request bodies.

Base64 maps every 3 input bytes to 4 output characters. Encoding sub-ranges
whose lengths are not multiples of 3 produces ``=`` padding in the middle of
the concatenated text, which providers reject. The whole buffer is therefore
always encoded in a single call.
"""

from __future__ import annotations

import base64
import binascii


def encode_audio(data: bytes) -> str:
    """Return the base64 text of the entire ``data`` buffer."""

    return base64.b64encode(bytes(data)).decode("ascii")


def decode_audio_text(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 audio payload: {exc}") from exc


def encoded_size(raw_size: int) -> int:
    """Length of the base64 text for ``raw_size`` input bytes."""

    return 4 * ((raw_size + 2) // 3)


__all__ = ["decode_audio_text", "encode_audio", "encoded_size"]
