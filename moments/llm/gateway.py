"""Moments gateway — the four model calls the orchestrator needs.

Every structured response is validated here, at the boundary; callers
only ever see typed results or an LLMError.
"""

import json
import logging
import re
from typing import Literal, Optional, Sequence

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator, model_validator

from ..store.github import DatedFile
from .prompts import CLASSIFY_SYSTEM_PROMPT, CRAFT_SYSTEM_PROMPT, EDIT_SYSTEM_PROMPT, REVIEW_SYSTEM_PROMPT
from .provider import ChatMessage, LLMEmptyResponseError, LLMProvider, LLMResponseFormatError

logger = logging.getLogger("moments.llm.gateway")

_FENCE_OPEN_RE = re.compile(r'^```(?:json)?\s*\n?', re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r'\n?```\s*$')


def strip_code_fences(raw: str) -> str:
    """Remove a markdown code fence the model sometimes wraps around JSON."""
    text = raw.strip()
    text = _FENCE_OPEN_RE.sub("", text)
    text = _FENCE_CLOSE_RE.sub("", text)
    return text.strip()


class Classification(BaseModel):
    label: Literal["content", "instruction", "ambiguous"]
    reason: str = ""

    @field_validator("label", mode="before")
    @classmethod
    def normalize_label(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class ReviewResult(BaseModel):
    decision: Literal["publish", "suggest"] = Field(validation_alias=AliasChoices("decision", "action"))
    text: str = Field(min_length=1)
    explanation: str = ""

    @field_validator("decision", mode="before")
    @classmethod
    def normalize_decision(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class EditResult(BaseModel):
    decision: Literal["edit", "unclear", "unsupported"] = Field(validation_alias=AliasChoices("decision", "action"))
    date_key: Optional[str] = Field(default=None, validation_alias=AliasChoices("date_key", "dateKey"))
    full_text: Optional[str] = Field(default=None, validation_alias=AliasChoices("full_text", "fullText"))
    explanation: str = ""
    clarification: Optional[str] = None
    reason: Optional[str] = None
    warning: Optional[str] = None

    @field_validator("decision", mode="before")
    @classmethod
    def normalize_decision(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("date_key", "full_text", "clarification", "reason", "warning", mode="before")
    @classmethod
    def blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def check_decision_fields(self):
        if self.decision == "edit":
            if not self.date_key or not re.fullmatch(r"\d{4}-\d{2}-\d{2}", self.date_key):
                raise ValueError("edit requires a YYYY-MM-DD date_key")
            if not self.full_text:
                raise ValueError("edit requires full_text")
        elif self.decision == "unclear" and not self.clarification:
            raise ValueError("unclear requires a clarification question")
        elif self.decision == "unsupported" and not self.reason:
            raise ValueError("unsupported requires a reason")
        return self


class MomentsGateway:
    """Classify, review, craft and edit — stateless request/response."""

    def __init__(self, provider: LLMProvider, model: Optional[str] = None):
        self.provider = provider
        self.model = model

    async def _ask(self, system: str, user: str, temperature: float, max_tokens: Optional[int] = None,
                   json_mode: bool = True) -> str:
        response = await self.provider.chat(
            [ChatMessage(role="system", content=system), ChatMessage(role="user", content=user)],
            model=self.model,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=json_mode,
        )
        return response.content

    @staticmethod
    def _parse(raw: str, model_cls, call: str):
        try:
            data = json.loads(strip_code_fences(raw))
        except json.JSONDecodeError as e:
            logger.warning(f"{call}: response is not JSON: {raw[:200]}")
            raise LLMResponseFormatError(f"{call}: response is not valid JSON") from e
        try:
            return model_cls.model_validate(data)
        except ValidationError as e:
            logger.warning(f"{call}: response failed validation: {e.errors()[:3]}")
            raise LLMResponseFormatError(f"{call}: unexpected response shape") from e

    async def classify(self, text: str, prior_turn_summary: Optional[str] = None) -> Classification:
        user = text
        if prior_turn_summary:
            user = f"Context — the bot's previous turn: {prior_turn_summary}\n\nMessage:\n{text}"
        raw = await self._ask(CLASSIFY_SYSTEM_PROMPT, user, temperature=0.1, max_tokens=300)
        result = self._parse(raw, Classification, "classify")
        logger.info(f"Classified as {result.label}: {result.reason[:100]}")
        return result

    async def review(self, text: str) -> ReviewResult:
        raw = await self._ask(REVIEW_SYSTEM_PROMPT, f"Review this moment for my microblog:\n\n{text}", temperature=0.3)
        return self._parse(raw, ReviewResult, "review")

    async def craft(self, topic: str) -> str:
        """Polished moment text; the topic itself when the model returns nothing."""
        try:
            raw = await self._ask(
                CRAFT_SYSTEM_PROMPT,
                f"Help me turn this into a nice moment:\n\n{topic}",
                temperature=0.7,
                json_mode=False,
            )
        except LLMEmptyResponseError:
            logger.warning("craft: empty response, using the topic as is")
            return topic
        return raw.strip() or topic

    async def execute_edit(
        self,
        instruction: str,
        recent_files: Sequence[DatedFile],
        new_image_ref: Optional[str] = None,
        today: Optional[str] = None,
    ) -> EditResult:
        parts = []
        if today:
            parts.append(f"Today is {today}.")
        parts.append(f"Instruction:\n{instruction}")
        if new_image_ref:
            parts.append(f"New image reference (embed exactly as given):\n{new_image_ref}")
        parts.append("Recent files (newest first):")
        for f in recent_files:
            parts.append(f"=== {f.date_key} ===\n{f.content}")

        raw = await self._ask(EDIT_SYSTEM_PROMPT, "\n\n".join(parts), temperature=0.2)
        result = self._parse(raw, EditResult, "execute_edit")
        logger.info(f"Edit decision: {result.decision} {result.date_key or ''}".rstrip())
        return result
