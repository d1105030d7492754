"""Outbound messages — plain text or text with an ordered set of choices.

The orchestrator talks to a Responder; each transport implements one.
Helpers here are channel-agnostic.
"""

import re
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class Choice:
    """One interactive button. ``value`` travels back in the ButtonEvent."""
    label: str
    action_id: str
    value: Optional[str] = None


class Responder(Protocol):
    """Where replies for one inbound event go."""

    async def send_text(self, text: str) -> None:
        ...

    async def send_choices(self, text: str, choices: list[Choice]) -> None:
        ...


def quote(text: str) -> str:
    """Render text as a markdown blockquote."""
    return "\n".join(f"> {line}" if line else ">" for line in text.strip().split("\n"))


def split_message(text: str, max_length: int = 4096) -> list[str]:
    """Split a long message into chunks respecting platform length limits.

    Tries to split at newlines first, then spaces, then hard-cuts.
    """
    if len(text) <= max_length:
        return [text]

    chunks = []
    remaining = text

    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break

        split_at = remaining.rfind("\n", 0, max_length)
        if split_at == -1:
            split_at = remaining.rfind(" ", 0, max_length)
        if split_at == -1:
            split_at = max_length

        chunks.append(remaining[:split_at])
        remaining = remaining[split_at:].lstrip()

    return chunks


def clean_outbound(text: str) -> str:
    """Collapse runs of blank lines and trim."""
    if not text:
        return text
    return re.sub(r'\n{3,}', '\n\n', text).strip()
