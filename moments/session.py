"""Per-principal ephemeral state.

One PrincipalSession holds the four pending-interaction slots. Each slot
holds at most one value; setting a slot replaces whatever was there.
Nothing here survives a restart.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .communication.inbound import InboundMessage

logger = logging.getLogger("moments.session")

CLARIFICATION_TTL_SECONDS = 300


@dataclass(frozen=True)
class Proposal:
    """Content awaiting accept / publish-original / discard."""
    candidate_text: str
    image_refs: tuple[str, ...] = ()


@dataclass(frozen=True)
class UnclearMessage:
    """A message that could be content or an instruction."""
    original_text: str
    original_message: InboundMessage


@dataclass(frozen=True)
class PendingEdit:
    """A fully computed replacement for a day file, awaiting approval."""
    target_date_key: str
    updated_full_text: str
    revision_token: str
    explanation: str = ""


@dataclass(frozen=True)
class ConversationContext:
    """An open clarification question for an instruction."""
    original_instruction: str
    clarification_question: str
    pending_image_ref: Optional[str] = None
    created_at: float = field(default_factory=time.time)


class FlowState(str, Enum):
    IDLE = "idle"
    AWAITING_PROPOSAL_DECISION = "awaiting_proposal_decision"
    AWAITING_EDIT_APPROVAL = "awaiting_edit_approval"
    AWAITING_CLARIFICATION = "awaiting_clarification"
    AWAITING_UNCLEAR_CHOICE = "awaiting_unclear_choice"


_SLOT_STATES = {
    "proposal": FlowState.AWAITING_PROPOSAL_DECISION,
    "pending_edit": FlowState.AWAITING_EDIT_APPROVAL,
    "context": FlowState.AWAITING_CLARIFICATION,
    "unclear": FlowState.AWAITING_UNCLEAR_CHOICE,
}


class PrincipalSession:
    """The single principal's pending interactions.

    Replacing an unresolved value is silent towards the user but logged;
    there is no queue of pending items.
    """

    def __init__(self, ttl_seconds: float = CLARIFICATION_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._slots: dict[str, object] = {}
        self._order: list[str] = []

    # ── generic slot handling ────────────────────────────────

    def _set(self, slot: str, value) -> None:
        if self._slots.get(slot) is not None:
            logger.warning(f"Replacing unresolved {slot} without resolving it")
        self._slots[slot] = value
        if slot in self._order:
            self._order.remove(slot)
        self._order.append(slot)

    def _get(self, slot: str):
        return self._slots.get(slot)

    def _take(self, slot: str):
        value = self._slots.pop(slot, None)
        if slot in self._order:
            self._order.remove(slot)
        return value

    def _clear(self, slot: str, expected=None) -> bool:
        """Clear a slot. With ``expected``, only if it still holds that value."""
        current = self._slots.get(slot)
        if current is None or (expected is not None and current is not expected):
            return False
        self._take(slot)
        return True

    # ── Proposal ─────────────────────────────────────────────

    @property
    def proposal(self) -> Optional[Proposal]:
        return self._get("proposal")

    def set_proposal(self, proposal: Proposal) -> None:
        self._set("proposal", proposal)

    def take_proposal(self) -> Optional[Proposal]:
        return self._take("proposal")

    # ── UnclearMessage ───────────────────────────────────────

    @property
    def unclear(self) -> Optional[UnclearMessage]:
        return self._get("unclear")

    def set_unclear(self, unclear: UnclearMessage) -> None:
        self._set("unclear", unclear)

    def clear_unclear(self, expected: Optional[UnclearMessage] = None) -> bool:
        return self._clear("unclear", expected)

    # ── PendingEdit ──────────────────────────────────────────

    @property
    def pending_edit(self) -> Optional[PendingEdit]:
        return self._get("pending_edit")

    def set_pending_edit(self, edit: PendingEdit) -> None:
        self._set("pending_edit", edit)

    def take_pending_edit(self) -> Optional[PendingEdit]:
        return self._take("pending_edit")

    # ── ConversationContext (expires) ────────────────────────

    def is_expired(self, context: ConversationContext) -> bool:
        return self.clock() - context.created_at >= self.ttl_seconds

    def new_context(self, original_instruction: str, question: str,
                    pending_image_ref: Optional[str] = None) -> ConversationContext:
        context = ConversationContext(
            original_instruction=original_instruction,
            clarification_question=question,
            pending_image_ref=pending_image_ref,
            created_at=self.clock(),
        )
        self._set("context", context)
        return context

    def active_context(self) -> Optional[ConversationContext]:
        """The live clarification context, purging it if it has expired."""
        context = self._get("context")
        if context is None:
            return None
        if self.is_expired(context):
            logger.info("Clarification context expired")
            self._take("context")
            return None
        return context

    def take_context(self) -> Optional[ConversationContext]:
        context = self.active_context()
        if context is not None:
            self._take("context")
        return context

    # ── state view ───────────────────────────────────────────

    @property
    def state(self) -> FlowState:
        """The most recently entered waiting state, or IDLE."""
        self.active_context()
        for slot in reversed(self._order):
            if self._slots.get(slot) is not None:
                return _SLOT_STATES[slot]
        return FlowState.IDLE

    def describe_pending(self) -> Optional[str]:
        """Short summary of what the principal was last asked to decide."""
        state = self.state
        if state == FlowState.AWAITING_PROPOSAL_DECISION:
            return f"proposed this moment for approval: {self.proposal.candidate_text[:300]}"
        if state == FlowState.AWAITING_EDIT_APPROVAL:
            edit = self.pending_edit
            return f"proposed an edit to {edit.target_date_key} ({edit.explanation[:200]}) awaiting approval"
        return None
