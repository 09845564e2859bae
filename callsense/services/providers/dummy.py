"""Dummy provider for testing or offline usage."""

from __future__ import annotations

import json
import re

from .base import AnalysisProvider, TranscriptionProvider

_SEGMENT_RE = re.compile(r"segment (\d+) of (\d+)")


class DummyProvider(TranscriptionProvider, AnalysisProvider):
    def __init__(self) -> None:
        self.transcription_calls = 0
        self.analysis_calls = 0

    async def transcribe(
        self,
        prompt: str,
        audio_base64: str,
        audio_format: str,
        mime_type: str,
    ) -> str:
        self.transcription_calls += 1
        match = _SEGMENT_RE.search(prompt)
        label = f"segment {match.group(1)}" if match else "recording"
        return (
            f"Dummy transcript for {label} ({len(audio_base64)} encoded characters). "
            "Replace with a real transcription backend."
        )

    async def analyze(self, instructions: str, transcript: str) -> str:
        self.analysis_calls += 1
        summary = transcript[:280] + ("..." if len(transcript) > 280 else "")
        return json.dumps(
            {
                "outcome": "unclear",
                "outcome_score": 50,
                "executive_summary": summary or "No transcript available.",
            }
        )


__all__ = ["DummyProvider"]
