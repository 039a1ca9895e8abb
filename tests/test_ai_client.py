# tests/test_ai_client.py
import json

import httpx
import pytest

from ai_review.core.config import Settings
from ai_review.services.ai_client import AIConfigError, AIResponseError, ChatCompletionClient


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _client(test_settings, handler):
    return ChatCompletionClient(test_settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_complete_json_posts_chat_request(test_settings):
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion('{"fit_score": 70}'))

    result = await _client(test_settings, handler).complete_json("system", "user")

    assert result == {"fit_score": 70}
    assert seen["url"] == "https://ai.test/v1/chat/completions"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"]["model"] == "gpt-test"
    assert seen["body"]["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in seen["body"]["messages"]] == ["system", "user"]


@pytest.mark.asyncio
async def test_non_2xx_raises(test_settings):
    client = _client(test_settings, lambda request: httpx.Response(429, json={"error": "rate limited"}))
    with pytest.raises(httpx.HTTPStatusError):
        await client.complete_json("s", "u")


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["not json", "[1, 2]", ""])
async def test_bad_content_raises(test_settings, content):
    client = _client(test_settings, lambda request: httpx.Response(200, json=_completion(content)))
    with pytest.raises(AIResponseError):
        await client.complete_json("s", "u")


@pytest.mark.asyncio
async def test_missing_api_key_fails_on_first_use():
    def handler(request):
        raise AssertionError("no request expected")

    client = ChatCompletionClient(Settings(AI_API_KEY=""), transport=httpx.MockTransport(handler))
    assert client.model
    with pytest.raises(AIConfigError):
        await client.complete_json("s", "u")
