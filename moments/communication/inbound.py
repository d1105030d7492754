"""Inbound events — what a transport hands to the orchestrator."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class AttachmentRef:
    """A file attached to an inbound message, not yet downloaded."""
    file_id: str
    name: str
    mime_type: str


@dataclass(frozen=True)
class InboundMessage:
    """One user turn. Immutable once received."""
    sender_id: int
    text: Optional[str] = None
    attachments: tuple[AttachmentRef, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ButtonEvent:
    """An inline button click. ``value`` is the opaque payload of the choice."""
    sender_id: int
    action_id: str
    value: Optional[str] = None
