"""Provider-agnostic LLM interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


# ════════════════════════════════════════════════════════
# LLM Exception Hierarchy: classify errors by type,
# not by string matching.  communication.errors maps these.
# ════════════════════════════════════════════════════════

class LLMError(Exception):
    """Base class for all LLM provider errors."""
    pass

class LLMRateLimitError(LLMError):
    """429 — rate limited after all retries exhausted."""
    pass

class LLMAuthError(LLMError):
    """401/403 — authentication or authorization failure."""
    pass

class LLMBadRequestError(LLMError):
    """400 — bad request (malformed prompt, unsupported parameter, etc.)."""
    pass

class LLMEmptyResponseError(LLMError):
    """LLM returned empty content."""
    pass

class LLMResponseFormatError(LLMError):
    """Response did not match the structured contract the caller expects."""
    pass


@dataclass
class ChatMessage:
    role: str           # 'system', 'user', 'assistant'
    content: str


@dataclass
class ChatResponse:
    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def chat(
        self,
        messages: list[ChatMessage],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> ChatResponse:
        """Send a chat completion request."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        ...
