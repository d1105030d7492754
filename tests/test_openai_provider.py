"""Tests for the OpenAI-compatible provider (HTTP mocked with httpx.MockTransport)."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from moments.llm.openai import OpenAIProvider
from moments.llm.provider import (
    ChatMessage,
    LLMAuthError,
    LLMBadRequestError,
    LLMEmptyResponseError,
    LLMRateLimitError,
)

MESSAGES = [ChatMessage(role="system", content="sys"), ChatMessage(role="user", content="hi")]


def completion(content="Hello", model="anthropic/claude-sonnet-4"):
    return {
        "model": model,
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 3},
    }


def provider_with(*responses):
    requests = []
    queue = list(responses)

    def handler(request):
        requests.append(request)
        return queue.pop(0)

    provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(handler))
    return provider, requests


class TestChat:
    @pytest.mark.asyncio
    async def test_success(self):
        provider, requests = provider_with(httpx.Response(200, json=completion("  Hello  ")))

        result = await provider.chat(MESSAGES, temperature=0.2, max_tokens=50, json_mode=True)

        assert result.content == "Hello"
        assert result.input_tokens == 12
        assert result.output_tokens == 3
        body = json.loads(requests[0].content)
        assert requests[0].url.path == "/api/v1/chat/completions"
        assert requests[0].headers["authorization"] == "Bearer sk-test"
        assert body["model"] == "anthropic/claude-sonnet-4"
        assert body["max_tokens"] == 50
        assert body["response_format"] == {"type": "json_object"}
        assert body["messages"][1] == {"role": "user", "content": "hi"}

    @pytest.mark.asyncio
    async def test_no_response_format_without_json_mode(self):
        provider, requests = provider_with(httpx.Response(200, json=completion()))

        await provider.chat(MESSAGES, model="other/model")

        body = json.loads(requests[0].content)
        assert "response_format" not in body
        assert body["model"] == "other/model"

    @pytest.mark.asyncio
    async def test_retries_once_on_server_error(self):
        provider, requests = provider_with(
            httpx.Response(502, text="bad gateway"),
            httpx.Response(200, json=completion("ok")),
        )

        with patch("moments.llm.openai.asyncio.sleep", new=AsyncMock()):
            result = await provider.chat(MESSAGES)

        assert result.content == "ok"
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_second_server_error_raises(self):
        provider, _ = provider_with(httpx.Response(500), httpx.Response(503))

        with patch("moments.llm.openai.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(httpx.HTTPStatusError):
                await provider.chat(MESSAGES)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [
        (429, LLMRateLimitError),
        (401, LLMAuthError),
        (403, LLMAuthError),
        (400, LLMBadRequestError),
    ])
    async def test_typed_errors(self, status, error):
        provider, requests = provider_with(httpx.Response(status, text="nope"))

        with pytest.raises(error):
            await provider.chat(MESSAGES)
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_empty_content(self):
        provider, _ = provider_with(httpx.Response(200, json=completion("   ")))
        with pytest.raises(LLMEmptyResponseError):
            await provider.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_no_choices(self):
        provider, _ = provider_with(httpx.Response(200, json={"choices": []}))
        with pytest.raises(LLMEmptyResponseError):
            await provider.chat(MESSAGES)

    def test_name(self):
        assert OpenAIProvider(api_key="k").name == "openrouter"
