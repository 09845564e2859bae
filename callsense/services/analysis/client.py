"""Score a full transcript against the persuasion frameworks."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Optional

from pydantic import ValidationError

from ...config import get_settings
from ...data.models import AnalysisResult
from ...logging import get_logger
from ..errors import (
    EmptyResult,
    ParseError,
    ProviderHTTPError,
    ProviderTimeout,
    classify_http_error,
    snippet,
)
from ..providers.base import AnalysisProvider
from .prompts import ANALYSIS_PROMPT

LOGGER = get_logger(__name__)

_FENCE_PATTERNS = (
    re.compile(r"```json\s*\n?([\s\S]*?)\n?```", re.IGNORECASE),
    re.compile(r"```[a-zA-Z]*\s*\n?([\s\S]*?)\n?```"),
)


def extract_payload(text: str) -> str:
    """Return the contents of the first fenced block, or ``text`` itself."""

    for pattern in _FENCE_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return text.strip()


def parse_analysis(text: str) -> AnalysisResult:
    payload = extract_payload(text)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        LOGGER.error("Analysis response is not JSON: %s", snippet(payload))
        raise ParseError("Failed to parse analysis results") from exc
    if not isinstance(data, dict):
        raise ParseError("Failed to parse analysis results: expected a JSON object")
    try:
        return AnalysisResult.model_validate(data)
    except ValidationError as exc:
        LOGGER.error("Analysis response does not match the schema: %s", exc)
        raise ParseError(f"Failed to parse analysis results: {snippet(str(exc))}") from exc


class AnalysisClient:
    def __init__(
        self,
        provider: AnalysisProvider,
        timeout: Optional[float] = None,
        instructions: str = ANALYSIS_PROMPT,
    ) -> None:
        self.provider = provider
        self.timeout = timeout or get_settings().request_timeout
        self.instructions = instructions

    async def analyze(self, transcript: str) -> AnalysisResult:
        if not transcript or not transcript.strip():
            raise ValueError("Missing transcript")

        LOGGER.info("Starting AI analysis (%d transcript characters)", len(transcript))
        try:
            text = await asyncio.wait_for(
                self.provider.analyze(self.instructions, transcript),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ProviderTimeout(f"Analysis timed out after {self.timeout:.0f}s") from exc
        except ProviderHTTPError as exc:
            LOGGER.error("Analysis provider returned HTTP %s", exc.status_code)
            raise classify_http_error(exc, "AI analysis") from exc

        if not text or not text.strip():
            raise EmptyResult("No analysis received from AI")
        return parse_analysis(text)


__all__ = ["AnalysisClient", "extract_payload", "parse_analysis"]
