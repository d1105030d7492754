"""OpenAI-compatible chat provider (OpenRouter, OpenAI, Groq, etc.)."""

import asyncio
import logging
import httpx
from typing import Optional
from .provider import (
    LLMProvider,
    ChatMessage,
    ChatResponse,
    LLMAuthError,
    LLMBadRequestError,
    LLMEmptyResponseError,
    LLMRateLimitError,
)

logger = logging.getLogger("moments.llm.openai")


class OpenAIProvider(LLMProvider):
    """OpenAI-compatible API provider.

    Works with any OpenAI-compatible endpoint:
    - OpenRouter: https://openrouter.ai/api/v1
    - OpenAI:     https://api.openai.com/v1
    - Groq:       https://api.groq.com/openai/v1
    """

    def __init__(
        self,
        api_key: str,
        chat_model: str = "anthropic/claude-sonnet-4",
        base_url: str = "https://openrouter.ai/api/v1",
        provider_name: str = "openrouter",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.chat_model = chat_model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._provider_name = provider_name
        self._transport = transport

    @property
    def name(self) -> str:
        return self._provider_name

    def _get_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _raise_for_status(resp: httpx.Response):
        """Map HTTP failures to the typed LLM exception hierarchy."""
        code = resp.status_code
        if code == 429:
            retry_after = resp.headers.get("retry-after", "a moment")
            raise LLMRateLimitError(f"Rate limited. Retry after {retry_after}.")
        if code in (401, 403):
            raise LLMAuthError(f"HTTP {code}: {resp.text[:200]}")
        if code == 400:
            raise LLMBadRequestError(f"HTTP 400: {resp.text[:200]}")
        resp.raise_for_status()

    async def chat(
        self,
        messages: list[ChatMessage],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> ChatResponse:
        model = model or self.chat_model

        body: dict = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
        }
        if max_tokens and max_tokens > 0:
            body["max_tokens"] = max_tokens
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        logger.debug(f"Request: model={model}, messages={len(messages)}, json={json_mode}")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(2):
                resp = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=body,
                    headers=self._get_headers(),
                )

                if 500 <= resp.status_code < 600 and attempt < 1:
                    logger.warning(
                        f"{self._provider_name} {resp.status_code}, retrying in 1s "
                        f"(attempt {attempt + 1}/2): {resp.text[:200]}"
                    )
                    await asyncio.sleep(1)
                    continue

                if resp.status_code >= 400:
                    logger.error(f"{self._provider_name} error {resp.status_code}: {resp.text[:200]}")
                    self._raise_for_status(resp)
                break

            data = resp.json()

        choices = data.get("choices") or []
        content = ""
        if choices:
            content = ((choices[0].get("message") or {}).get("content") or "").strip()
        if not content:
            raise LLMEmptyResponseError(f"Empty response from {model}")

        usage = data.get("usage") or {}
        return ChatResponse(
            content=content,
            model=data.get("model", model),
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
        )
