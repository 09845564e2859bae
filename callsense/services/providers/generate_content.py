"""Native Gemini ``generateContent`` provider."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from ...config import get_settings
from ...logging import get_logger
from ..errors import ProviderError, ProviderHTTPError, ProviderTimeout
from .base import (
    ANALYSIS_ACKNOWLEDGEMENT,
    AnalysisProvider,
    TranscriptionProvider,
    analysis_request_text,
)

LOGGER = get_logger(__name__)


class GenerateContentProvider(TranscriptionProvider, AnalysisProvider):
    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        settings = get_settings()
        self.model = model or settings.analysis_model
        api_key = api_key or settings.gemini_api_key
        if not api_key:
            raise RuntimeError(
                "Gemini API key not configured. Set CALLSENSE_GEMINI_API_KEY "
                "or run 'callsense config set gemini_api_key <key>'."
            )
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.client = client or httpx.AsyncClient(
            timeout=timeout or settings.request_timeout,
            headers={"x-goog-api-key": api_key},
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def transcribe(
        self,
        prompt: str,
        audio_base64: str,
        audio_format: str,
        mime_type: str,
    ) -> str:
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": prompt},
                        {"inline_data": {"mime_type": mime_type, "data": audio_base64}},
                    ],
                }
            ],
            "generationConfig": {"temperature": 0.1},
        }
        LOGGER.info("Requesting generateContent transcription from %s (%s)", self.model, mime_type)
        return await self._generate(payload)

    async def analyze(self, instructions: str, transcript: str) -> str:
        payload = {
            "contents": [
                {"role": "user", "parts": [{"text": instructions}]},
                {"role": "model", "parts": [{"text": ANALYSIS_ACKNOWLEDGEMENT}]},
                {"role": "user", "parts": [{"text": analysis_request_text(transcript)}]},
            ],
            "generationConfig": {"temperature": 0.3},
        }
        LOGGER.info("Requesting generateContent analysis from %s", self.model)
        return await self._generate(payload)

    async def _generate(self, payload: Dict[str, Any]) -> str:
        try:
            response = await self.client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as exc:
            raise ProviderTimeout(f"The AI provider did not respond in time: {exc}") from exc
        except httpx.TransportError as exc:
            raise ProviderTimeout(f"Could not reach the AI provider: {exc}") from exc

        if response.status_code >= 400:
            raise ProviderHTTPError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(
                "The AI provider returned a response that is not JSON",
                status_code=response.status_code,
            ) from exc
        return _candidate_text(data)

    async def aclose(self) -> None:
        await self.client.aclose()


def _candidate_text(data: Dict[str, Any]) -> str:
    candidates: List[Dict[str, Any]] = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(str(part.get("text", "")) for part in parts if isinstance(part, dict))


__all__ = ["GenerateContentProvider"]
