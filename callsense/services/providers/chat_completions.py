"""OpenAI-style chat-completions provider."""

from __future__ import annotations

from typing import Any, Optional

from ...config import get_settings
from ...logging import get_logger
from ..errors import ProviderHTTPError, ProviderTimeout
from .base import AnalysisProvider, TranscriptionProvider, analysis_request_text

LOGGER = get_logger(__name__)


class ChatCompletionsProvider(TranscriptionProvider, AnalysisProvider):
    """Talks to any OpenAI compatible ``/chat/completions`` endpoint.

    Audio is sent as an ``input_audio`` content part next to the instruction
    text, which is the shape AI gateways fronting Gemini accept.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.model = model or settings.transcription_model
        try:
            from openai import APIConnectionError, APIStatusError, AsyncOpenAI, OpenAIError  # type: ignore
        except ImportError as exc:  # pragma: no cover - runtime dependency guard
            raise RuntimeError("openai package is required for ChatCompletionsProvider") from exc

        client_kwargs: dict = {
            "timeout": timeout or settings.request_timeout,
            # retries are owned by the orchestrator
            "max_retries": 0,
        }
        api_key = api_key or settings.chat_api_key
        if api_key:
            client_kwargs["api_key"] = api_key
        base_url = base_url or settings.chat_base_url
        if base_url:
            client_kwargs["base_url"] = base_url

        try:
            self.client = AsyncOpenAI(**client_kwargs)
        except OpenAIError as exc:
            message = str(exc)
            if "api_key" in message.lower():
                raise RuntimeError(
                    "Chat completions API key not configured. Set CALLSENSE_CHAT_API_KEY "
                    "or run 'callsense config set chat_api_key <key>'."
                ) from exc
            raise RuntimeError(f"Failed to initialise chat completions client: {message}") from exc
        self._status_error_cls = APIStatusError
        self._connection_error_cls = APIConnectionError

    async def transcribe(
        self,
        prompt: str,
        audio_base64: str,
        audio_format: str,
        mime_type: str,
    ) -> str:
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {
                        "type": "input_audio",
                        "input_audio": {"data": audio_base64, "format": audio_format},
                    },
                ],
            }
        ]
        LOGGER.info("Requesting chat transcription from %s (%s)", self.model, audio_format)
        return await self._complete(messages, temperature=0.1)

    async def analyze(self, instructions: str, transcript: str) -> str:
        messages = [
            {"role": "system", "content": instructions},
            {"role": "user", "content": analysis_request_text(transcript)},
        ]
        LOGGER.info("Requesting chat analysis from %s", self.model)
        return await self._complete(messages, temperature=0.3)

    async def _complete(self, messages: list, temperature: float) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
            )
        except self._status_error_cls as exc:
            raise ProviderHTTPError(exc.status_code, _error_body(exc)) from exc
        except self._connection_error_cls as exc:
            raise ProviderTimeout(f"Could not reach the AI provider: {exc}") from exc
        return _first_choice_text(response)

    async def aclose(self) -> None:
        await self.client.close()


def _error_body(exc: Any) -> str:
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict):
            return str(error.get("message") or error)
        return str(error)
    response = getattr(exc, "response", None)
    if response is not None and getattr(response, "text", None):
        return response.text
    return str(getattr(exc, "message", None) or exc)


def _first_choice_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    if isinstance(content, list):
        return "".join(
            str(part.get("text", "")) if isinstance(part, dict) else str(getattr(part, "text", ""))
            for part in content
        )
    return str(content or "")


__all__ = ["ChatCompletionsProvider"]
