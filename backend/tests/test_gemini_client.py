"""
Tests for the Gemini REST client, using httpx's mock transport.
"""

import base64
import json

import httpx
import pytest

from core.config import settings
from services.gemini_client import GeminiClient
from utils.error_handlers import InferenceError


def reply(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}]}


def make_client(handler, **kwargs) -> GeminiClient:
    return GeminiClient(
        api_key=kwargs.pop("api_key", "secret"),
        model="gemini-test",
        base_url="https://gemini.test/v1beta/",
        transport=httpx.MockTransport(handler),
        **kwargs
    )


@pytest.mark.asyncio
async def test_generate_sends_prompt_and_inline_image():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=reply('{"skin_type": "dry"}'))

    text = await make_client(handler).generate("describe", b"\x89PNG", "image/png")

    assert text == '{"skin_type": "dry"}'
    assert seen["url"] == "https://gemini.test/v1beta/models/gemini-test:generateContent"
    assert seen["key"] == "secret"
    parts = seen["body"]["contents"][0]["parts"]
    assert parts[0] == {"text": "describe"}
    assert parts[1]["inline_data"]["mime_type"] == "image/png"
    assert base64.b64decode(parts[1]["inline_data"]["data"]) == b"\x89PNG"
    assert seen["body"]["generationConfig"]["temperature"] == settings.GEMINI_TEMPERATURE


@pytest.mark.asyncio
async def test_text_parts_are_concatenated():
    def handler(request):
        body = {"candidates": [{"content": {"parts": [{"text": "```json\n{"}, {"text": "}\n```"}]}}]}
        return httpx.Response(200, json=body)

    assert await make_client(handler).generate("p", b"x", "image/jpeg") == "```json\n{}\n```"


@pytest.mark.asyncio
async def test_upstream_error_status():
    def handler(request):
        return httpx.Response(503, json={"error": {"message": "overloaded"}})

    with pytest.raises(InferenceError, match="status 503"):
        await make_client(handler).generate("p", b"x", "image/jpeg")


@pytest.mark.asyncio
async def test_transport_error_keeps_cause_message():
    def handler(request):
        raise httpx.ReadTimeout("network timeout", request=request)

    with pytest.raises(InferenceError, match="network timeout"):
        await make_client(handler).generate("p", b"x", "image/jpeg")


@pytest.mark.asyncio
async def test_blocked_prompt_has_no_candidates():
    def handler(request):
        return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

    with pytest.raises(InferenceError, match="SAFETY"):
        await make_client(handler).generate("p", b"x", "image/jpeg")


@pytest.mark.asyncio
async def test_empty_candidate_text():
    def handler(request):
        return httpx.Response(200, json={"candidates": [{"finishReason": "MAX_TOKENS"}]})

    with pytest.raises(InferenceError, match="MAX_TOKENS"):
        await make_client(handler).generate("p", b"x", "image/jpeg")


@pytest.mark.asyncio
async def test_missing_api_key(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", None)
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=reply("{}"))

    with pytest.raises(InferenceError, match="Missing Gemini API key"):
        await make_client(handler, api_key=None).generate("p", b"x", "image/jpeg")
    assert calls == []
