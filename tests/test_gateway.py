"""Tests for the Moments gateway: prompts out, validated results in."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from moments.llm.gateway import EditResult, MomentsGateway, strip_code_fences
from moments.llm.openai import OpenAIProvider
from moments.llm.provider import ChatResponse, LLMResponseFormatError
from moments.store.github import DatedFile


def make_gateway(*contents):
    provider = MagicMock()
    provider.chat = AsyncMock(side_effect=[ChatResponse(content=c, model="test") for c in contents])
    return MomentsGateway(provider, model="test-model"), provider


class TestStripCodeFences:
    def test_plain_json(self):
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence_with_whitespace(self):
        assert strip_code_fences('  ```\n{"a": 1}\n```  ') == '{"a": 1}'


class TestClassify:
    @pytest.mark.asyncio
    async def test_parses_label(self):
        gateway, provider = make_gateway('```json\n{"label": "Instruction", "reason": "asks to fix"}\n```')

        result = await gateway.classify("fix the typo")

        assert result.label == "instruction"
        kwargs = provider.chat.await_args.kwargs
        assert kwargs["json_mode"] is True
        assert kwargs["temperature"] == 0.1
        assert kwargs["model"] == "test-model"

    @pytest.mark.asyncio
    async def test_prior_turn_summary_is_included(self):
        gateway, provider = make_gateway('{"label": "content"}')

        await gateway.classify("yes", prior_turn_summary="proposed this moment for approval: hi")

        user_message = provider.chat.await_args.args[0][1]
        assert user_message.role == "user"
        assert "proposed this moment for approval: hi" in user_message.content
        assert user_message.content.endswith("yes")

    @pytest.mark.asyncio
    async def test_unknown_label_is_rejected(self):
        gateway, _ = make_gateway('{"label": "question"}')
        with pytest.raises(LLMResponseFormatError):
            await gateway.classify("hmm")

    @pytest.mark.asyncio
    async def test_non_json_is_rejected(self):
        gateway, _ = make_gateway("content, definitely")
        with pytest.raises(LLMResponseFormatError):
            await gateway.classify("hmm")


class TestReview:
    @pytest.mark.asyncio
    async def test_accepts_action_alias(self):
        gateway, _ = make_gateway('{"action": "suggest", "text": "Better", "explanation": "clearer"}')

        result = await gateway.review("better")

        assert result.decision == "suggest"
        assert result.text == "Better"
        assert result.explanation == "clearer"

    @pytest.mark.asyncio
    async def test_empty_text_is_rejected(self):
        gateway, _ = make_gateway('{"decision": "publish", "text": ""}')
        with pytest.raises(LLMResponseFormatError):
            await gateway.review("x")


class TestCraft:
    @pytest.mark.asyncio
    async def test_returns_plain_text(self):
        gateway, provider = make_gateway("  A lovely moment.  ")

        assert await gateway.craft("tea") == "A lovely moment."
        assert provider.chat.await_args.kwargs["json_mode"] is False

    @pytest.mark.asyncio
    async def test_blank_model_output_falls_back_to_topic(self):
        def handler(request):
            return httpx.Response(200, json={"choices": [{"message": {"content": "   "}}]})

        provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(handler))
        gateway = MomentsGateway(provider)

        assert await gateway.craft("a tea shop") == "a tea shop"


class TestExecuteEdit:
    FILES = [
        DatedFile(date_key="2026-10-18", content="today text", revision_token="s1"),
        DatedFile(date_key="2026-10-17", content="yesterday text", revision_token="s2"),
    ]

    @pytest.mark.asyncio
    async def test_prompt_lists_files_and_image(self):
        payload = {"decision": "edit", "dateKey": "2026-10-17", "fullText": "new", "explanation": "done"}
        gateway, provider = make_gateway(json.dumps(payload))

        result = await gateway.execute_edit("fix it", self.FILES, "![image](/x.png)", today="2026-10-18")

        assert result.date_key == "2026-10-17"
        assert result.full_text == "new"
        prompt = provider.chat.await_args.args[0][1].content
        assert "Today is 2026-10-18." in prompt
        assert "![image](/x.png)" in prompt
        assert prompt.index("=== 2026-10-18 ===") < prompt.index("=== 2026-10-17 ===")
        assert "yesterday text" in prompt

    @pytest.mark.asyncio
    async def test_edit_without_full_text_is_rejected(self):
        gateway, _ = make_gateway('{"decision": "edit", "date_key": "2026-10-17", "full_text": "  "}')
        with pytest.raises(LLMResponseFormatError):
            await gateway.execute_edit("fix it", self.FILES)

    @pytest.mark.asyncio
    async def test_unclear_needs_question(self):
        gateway, _ = make_gateway('{"decision": "unclear"}')
        with pytest.raises(LLMResponseFormatError):
            await gateway.execute_edit("fix it", self.FILES)


class TestEditResultModel:
    def test_bad_date_key(self):
        with pytest.raises(ValueError):
            EditResult.model_validate({"decision": "edit", "date_key": "yesterday", "full_text": "x"})

    def test_unsupported_with_reason(self):
        result = EditResult.model_validate({"decision": "UNSUPPORTED", "reason": "Can't do that", "warning": ""})
        assert result.decision == "unsupported"
        assert result.warning is None
