import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest

from callsense.config import Settings
from callsense.services.errors import ProviderError, ProviderHTTPError, ProviderTimeout
from callsense.services.factory import (
    ServiceConfigurationError,
    resolve_analysis_provider,
    resolve_transcription_provider,
)
from callsense.services.providers import DummyProvider
from callsense.services.providers.base import ANALYSIS_ACKNOWLEDGEMENT
from callsense.services.providers.chat_completions import ChatCompletionsProvider
from callsense.services.providers.generate_content import GenerateContentProvider


def _gemini(handler) -> GenerateContentProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GenerateContentProvider(
        model="gemini-test", api_key="key", base_url="https://gemini.test/v1beta/", client=client
    )


def _candidate(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def test_generate_content_sends_inline_audio() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_candidate("Alice: hi"))

    text = asyncio.run(_gemini(handler).transcribe("prompt", "QUJD", "wav", "audio/wav"))

    assert text == "Alice: hi"
    request = seen[0]
    assert str(request.url) == "https://gemini.test/v1beta/models/gemini-test:generateContent"
    body = json.loads(request.content)
    parts = body["contents"][0]["parts"]
    assert parts[0] == {"text": "prompt"}
    assert parts[1] == {"inline_data": {"mime_type": "audio/wav", "data": "QUJD"}}


def test_generate_content_analysis_is_a_three_turn_conversation() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=_candidate("{}"))

    asyncio.run(_gemini(handler).analyze("instructions", "Alice: hi"))

    contents = seen[0]["contents"]
    assert [turn["role"] for turn in contents] == ["user", "model", "user"]
    assert contents[1]["parts"][0]["text"] == ANALYSIS_ACKNOWLEDGEMENT
    assert contents[2]["parts"][0]["text"].endswith("Alice: hi")


def test_generate_content_error_status_is_raised_untyped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="RESOURCE_EXHAUSTED")

    with pytest.raises(ProviderHTTPError) as excinfo:
        asyncio.run(_gemini(handler).analyze("instructions", "text"))

    assert excinfo.value.status_code == 429
    assert excinfo.value.body == "RESOURCE_EXHAUSTED"


def test_generate_content_network_failure_is_a_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderTimeout):
        asyncio.run(_gemini(handler).transcribe("prompt", "QUJD", "wav", "audio/wav"))


def test_generate_content_non_json_body_is_a_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(ProviderError):
        asyncio.run(_gemini(handler).analyze("instructions", "text"))


def test_generate_content_without_candidates_returns_empty_text() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"candidates": []})

    assert asyncio.run(_gemini(handler).analyze("instructions", "text")) == ""


def test_generate_content_requires_api_key(monkeypatch) -> None:
    monkeypatch.setattr("callsense.services.providers.generate_content.get_settings", lambda: Settings())
    monkeypatch.delenv("CALLSENSE_GEMINI_API_KEY", raising=False)

    with pytest.raises(RuntimeError, match="Gemini API key not configured"):
        GenerateContentProvider()


class _StatusError(Exception):
    def __init__(self, status_code: int, body: dict) -> None:
        super().__init__("status error")
        self.status_code = status_code
        self.body = body


class _ConnectionError(Exception):
    pass


def _chat(create) -> ChatCompletionsProvider:
    provider = object.__new__(ChatCompletionsProvider)
    provider.model = "google/gemini-test"
    provider.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    provider._status_error_cls = _StatusError
    provider._connection_error_cls = _ConnectionError
    return provider


def test_chat_transcription_sends_input_audio_part() -> None:
    calls = []

    async def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="Bob: hello"))])

    text = asyncio.run(_chat(create).transcribe("prompt", "QUJD", "mp3", "audio/mpeg"))

    assert text == "Bob: hello"
    content = calls[0]["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": "prompt"}
    assert content[1] == {"type": "input_audio", "input_audio": {"data": "QUJD", "format": "mp3"}}
    assert calls[0]["model"] == "google/gemini-test"
    assert calls[0]["temperature"] == 0.1


def test_chat_analysis_uses_system_instructions() -> None:
    calls = []

    async def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="{}"))])

    asyncio.run(_chat(create).analyze("instructions", "Alice: hi"))

    messages = calls[0]["messages"]
    assert messages[0] == {"role": "system", "content": "instructions"}
    assert messages[1]["role"] == "user"
    assert messages[1]["content"].endswith("Alice: hi")


def test_chat_status_error_is_raised_untyped() -> None:
    async def create(**kwargs):
        raise _StatusError(402, {"error": {"message": "Payment required"}})

    with pytest.raises(ProviderHTTPError) as excinfo:
        asyncio.run(_chat(create).transcribe("prompt", "QUJD", "wav", "audio/wav"))

    assert excinfo.value.status_code == 402
    assert excinfo.value.body == "Payment required"


def test_chat_connection_error_is_a_timeout() -> None:
    async def create(**kwargs):
        raise _ConnectionError("down")

    with pytest.raises(ProviderTimeout):
        asyncio.run(_chat(create).analyze("instructions", "text"))


def test_chat_without_choices_returns_empty_text() -> None:
    async def create(**kwargs):
        return SimpleNamespace(choices=[])

    assert asyncio.run(_chat(create).analyze("instructions", "text")) == ""


def test_dummy_provider_labels_segments() -> None:
    provider = DummyProvider()

    text = asyncio.run(provider.transcribe("This audio is segment 2 of 3 of one call", "QUJD", "wav", "audio/wav"))
    analysis = json.loads(asyncio.run(provider.analyze("instructions", "transcript")))

    assert "segment 2" in text
    assert analysis["outcome"] == "unclear"
    assert provider.transcription_calls == 1
    assert provider.analysis_calls == 1


def test_factory_resolves_named_providers() -> None:
    settings = Settings(gemini_api_key="key")

    assert isinstance(resolve_transcription_provider("dummy", settings), DummyProvider)
    assert isinstance(resolve_analysis_provider("Gemini", settings), GenerateContentProvider)
    with pytest.raises(ServiceConfigurationError):
        resolve_transcription_provider("carrier-pigeon", settings)
    with pytest.raises(ServiceConfigurationError):
        resolve_analysis_provider("carrier-pigeon", settings)
