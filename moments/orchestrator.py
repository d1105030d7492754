"""Conversation orchestrator — the Moments bot logic.

Flows:
1. Text → classify → publish flow: AI review, then publish (minor fixes)
   or propose (bigger changes). Attached images upload alongside the review.
2. Images without text → published straight away.
3. "help me write about X" → AI crafts a moment → proposed.
4. "show today" → today's file.
5. Instruction ("fix the typo in yesterday's post") → edit of a recent
   day file, approved or rejected via buttons; the model may ask a
   clarifying question first, and the next message answers it.
6. Buttons resolve whatever is pending in the PrincipalSession.

Every flow runs behind _guarded(): a failure is logged and reported to
the user, never raised into the transport.
"""

import asyncio
import contextlib
import logging
import re
from typing import Optional, Sequence

from .communication.errors import DanglingReferenceError, classify_error
from .communication.inbound import ButtonEvent, InboundMessage
from .communication.outbound import Choice, Responder, quote
from .emoji import convert_shortcodes
from .images import ImagePipeline, extract_attachments
from .llm.gateway import MomentsGateway
from .session import PendingEdit, PrincipalSession, Proposal, UnclearMessage
from .store.github import GitHubStore, StoreConflict

logger = logging.getLogger("moments.orchestrator")


class Action:
    """Button action ids."""
    ACCEPT_PROPOSAL = "accept_suggestion"
    REJECT_PROPOSAL = "reject_suggestion"
    PUBLISH_ORIGINAL = "publish_original"
    TREAT_AS_CONTENT = "treat_as_content"
    TREAT_AS_INSTRUCTION = "treat_as_instruction"
    APPROVE_EDIT = "approve_edit"
    REJECT_EDIT = "reject_edit"


UNAUTHORIZED_REPLY = "🔒 Sorry, I'm a private bot. I only work for my owner."
NOTHING_PENDING_REPLY = "⚠️ Nothing pending — that choice is no longer active. Send me a new moment!"
MISSING_ORIGINAL_REPLY = "⚠️ Couldn't find the original text. Please send it again."
EMPTY_TOPIC_REPLY = (
    "💡 Tell me what you'd like to write about! e.g.\n"
    "> help me write about discovering a cool new tool"
)
HELP_TEXT = (
    "👋 *Moments Bot* — your private microblog assistant\n\n"
    "Just send me a thought and I'll post it to your moments page.\n\n"
    "• *Send any text* → I'll review it and publish (or suggest edits)\n"
    "• *Send photos* → published as today's moment (add a caption for text)\n"
    "• *help me write about <topic>* → I'll craft a nice moment for you\n"
    "• *Ask for a change* (e.g. fix the typo in yesterday's post) → I'll propose an edit\n"
    "• *show today* → see what's been posted today\n"
    "• *help* → this message"
)

SHOW_TODAY_RE = re.compile(r"^(show\s+today|today|what.?s\s+today)", re.IGNORECASE)
CRAFT_RE = re.compile(r"^(help\s+me\s+(write|craft|post)|make\s+(this\s+)?a?\s*(nice\s+)?post)", re.IGNORECASE)
CRAFT_PREFIX_RE = re.compile(
    r"^(help\s+me\s+(write|craft|post)\s*(about)?|make\s+(this\s+)?a?\s*(nice\s+)?post\s*(about|of)?)\s*",
    re.IGNORECASE,
)
HELP_RE = re.compile(r"^help$", re.IGNORECASE)


def combine_entry(text: Optional[str], image_refs: Sequence[str] = ()) -> str:
    """Entry body: text, then each image embed, separated by blank lines."""
    parts = [text.strip()] if text and text.strip() else []
    parts.extend(image_refs)
    return "\n\n".join(parts)


class Orchestrator:
    """Routes one principal's messages and button clicks through the flows."""

    def __init__(
        self,
        gateway: MomentsGateway,
        store: GitHubStore,
        images: ImagePipeline,
        authorized_user_id: int,
        session: Optional[PrincipalSession] = None,
        recent_days: int = 3,
        serialize: bool = False,
    ):
        self.gateway = gateway
        self.store = store
        self.images = images
        self.authorized_user_id = authorized_user_id
        self.session = session or PrincipalSession()
        self.recent_days = recent_days
        # Optional run-after-previous ordering of events
        self._lock = asyncio.Lock() if serialize else None
        self._button_handlers = {
            Action.ACCEPT_PROPOSAL: self._on_accept_proposal,
            Action.REJECT_PROPOSAL: self._on_reject_proposal,
            Action.PUBLISH_ORIGINAL: self._on_publish_original,
            Action.TREAT_AS_CONTENT: self._on_treat_as_content,
            Action.TREAT_AS_INSTRUCTION: self._on_treat_as_instruction,
            Action.APPROVE_EDIT: self._on_approve_edit,
            Action.REJECT_EDIT: self._on_reject_edit,
        }

    def is_authorized(self, sender_id) -> bool:
        return str(sender_id) == str(self.authorized_user_id)

    def _serialized(self):
        return self._lock if self._lock is not None else contextlib.nullcontext()

    async def _guarded(self, name: str, flow, reply: Responder):
        """Await a flow; log and report any failure instead of raising."""
        try:
            await flow
        except StoreConflict as e:
            logger.warning(f"{name}: store conflict on {e.path}")
            await reply.send_text(f"⚠️ {classify_error(e)}")
        except Exception as e:
            logger.error(f"Error in {name}: {e}", exc_info=True)
            await reply.send_text(f"❌ {classify_error(e)}")

    # ═══════════════════════════════════════════════════════
    # Inbound messages
    # ═══════════════════════════════════════════════════════

    async def handle_message(self, message: InboundMessage, reply: Responder):
        if not self.is_authorized(message.sender_id):
            logger.warning(f"Rejected message from unauthorized user {message.sender_id}")
            await reply.send_text(UNAUTHORIZED_REPLY)
            return

        async with self._serialized():
            await self._route_message(message, reply)

    async def _route_message(self, message: InboundMessage, reply: Responder):
        text = convert_shortcodes(message.text or "").strip()

        if not text and not message.attachments:
            return

        if not text:
            await self._guarded("image publish", self._publish_images_only(message, reply), reply)
            return

        # --- Fixed commands ---
        if SHOW_TODAY_RE.match(text):
            await self._guarded("show today", self._show_today(reply), reply)
            return

        if CRAFT_RE.match(text):
            topic = CRAFT_PREFIX_RE.sub("", text, count=1).strip()
            if not topic:
                await reply.send_text(EMPTY_TOPIC_REPLY)
                return
            await self._guarded("craft", self._craft(topic, reply), reply)
            return

        if HELP_RE.match(text):
            await reply.send_text(HELP_TEXT)
            return

        # --- Answer to an open clarification question ---
        context = self.session.active_context()
        if context is not None:
            await self._guarded("follow-up", self._follow_up(text, reply), reply)
            return

        label = await self._classify(text)
        if label == "instruction":
            await self._guarded("instruction", self._instruction_flow(text, message, reply), reply)
        elif label == "ambiguous":
            await self._ask_unclear(text, message, reply)
        else:
            await self._guarded("publish", self._publish_flow(text, message, reply), reply)

    async def _classify(self, text: str) -> str:
        """Intent label; any failure falls back to publishing."""
        try:
            result = await self.gateway.classify(text, self.session.describe_pending())
        except Exception as e:
            logger.warning(f"Classification failed, treating as content: {type(e).__name__}: {e}")
            return "content"
        return result.label

    async def _ask_unclear(self, text: str, message: InboundMessage, reply: Responder):
        self.session.set_unclear(UnclearMessage(original_text=text, original_message=message))
        await reply.send_choices(
            "🤔 Should I publish this as a moment, or is it an instruction for me?\n\n" + quote(text),
            [
                Choice("📤 Publish it", Action.TREAT_AS_CONTENT),
                Choice("🛠️ It's an instruction", Action.TREAT_AS_INSTRUCTION),
            ],
        )

    # ── Fixed commands ───────────────────────────────────────

    async def _show_today(self, reply: Responder):
        key = self.store.today_key()
        today = await self.store.read(key)
        if today is None:
            await reply.send_text(f"📭 No moments yet for {key}. Send me one!")
        else:
            await reply.send_text(f"📝 *Moments for {key}:*\n\n```\n{today.content}\n```")

    async def _craft(self, topic: str, reply: Responder):
        await reply.send_text("✨ Crafting your moment...")
        crafted = await self.gateway.craft(topic)
        self.session.set_proposal(Proposal(candidate_text=crafted))
        await reply.send_choices(
            "✨ *Here's what I came up with:*\n\n" + quote(crafted),
            [
                Choice("✅ Publish", Action.ACCEPT_PROPOSAL),
                Choice("❌ Discard", Action.REJECT_PROPOSAL),
            ],
        )

    # ── Publishing ───────────────────────────────────────────

    async def _commit(self, body: str, reply: Responder):
        result = await self.store.append_entry(body)
        verb = "Created" if result.created else "Added to"
        await reply.send_text(f"✅ {verb} today's moments!\n\n{quote(body)}\n\n🔗 {result.url}")

    async def _publish_images_only(self, message: InboundMessage, reply: Responder):
        attachments = extract_attachments(message)
        if not attachments:
            await reply.send_text("⚠️ I can only publish PNG, JPEG, GIF or WebP images.")
            return

        uploaded = await self.images.fetch_and_upload(attachments, self.store.today_key())
        if not uploaded:
            await reply.send_text("❌ Couldn't upload your image(s). Nothing was published.")
            return

        await self._commit(combine_entry(None, [u.embed for u in uploaded]), reply)

    async def _publish_flow(self, text: str, message: Optional[InboundMessage], reply: Responder):
        attachments = extract_attachments(message)
        await reply.send_text("🔍 Reviewing your moment...")

        uploaded = []
        if attachments:
            # Review and image transfer run side by side; neither cancels the other
            review, transfer = await asyncio.gather(
                self.gateway.review(text),
                self.images.fetch_and_upload(attachments, self.store.today_key()),
                return_exceptions=True,
            )
            if isinstance(transfer, BaseException):
                logger.error(f"Image transfer failed: {transfer}", exc_info=transfer)
            else:
                uploaded = transfer
            if isinstance(review, BaseException):
                raise review

            if not uploaded:
                await reply.send_text("⚠️ I couldn't upload your image(s), so they were dropped. Publishing the text only.")
            elif len(uploaded) < len(attachments):
                await reply.send_text(f"⚠️ Only {len(uploaded)} of {len(attachments)} images could be uploaded.")
        else:
            review = await self.gateway.review(text)

        embeds = tuple(u.embed for u in uploaded)

        if review.decision == "publish":
            await self._commit(combine_entry(review.text, embeds), reply)
            return

        self.session.set_proposal(Proposal(candidate_text=review.text, image_refs=embeds))
        await reply.send_choices(
            "📝 *Your original:*\n" + quote(text)
            + "\n\n✨ *Suggested version:*\n" + quote(review.text)
            + "\n\n💬 *Why:* " + (review.explanation or "—"),
            [
                Choice("✅ Use suggestion", Action.ACCEPT_PROPOSAL),
                Choice("📤 Publish original", Action.PUBLISH_ORIGINAL, value=text),
                Choice("❌ Discard", Action.REJECT_PROPOSAL),
            ],
        )

    # ── Instructions (edits) ─────────────────────────────────

    async def _instruction_flow(self, text: str, message: Optional[InboundMessage], reply: Responder):
        image_ref = None
        attachments = extract_attachments(message)
        if attachments:
            # The edit needs the image's final reference, so upload it first
            uploaded = await self.images.fetch_and_upload(attachments[:1], self.store.today_key())
            if uploaded:
                image_ref = uploaded[0].embed
            else:
                await reply.send_text("⚠️ I couldn't upload your image, continuing without it.")

        await self._run_edit(text, text, image_ref, reply)

    async def _follow_up(self, answer: str, reply: Responder):
        context = self.session.take_context()
        if context is None:
            await reply.send_text(NOTHING_PENDING_REPLY)
            return
        combined = (
            f"Original instruction: {context.original_instruction}\n"
            f"Question you asked: {context.clarification_question}\n"
            f"Owner's answer: {answer}"
        )
        await self._run_edit(combined, combined, context.pending_image_ref, reply)

    async def _run_edit(self, instruction: str, original_instruction: str, image_ref: Optional[str],
                        reply: Responder):
        await reply.send_text("🛠️ Working on your request...")

        recent = await self.store.read_recent(self.recent_days)
        if not recent:
            await reply.send_text("📭 There are no recent moments to edit.")
            return

        result = await self.gateway.execute_edit(instruction, recent, image_ref, today=self.store.today_key())

        if result.decision == "unclear":
            self.session.new_context(original_instruction, result.clarification, image_ref)
            await reply.send_text(f"❓ {result.clarification}")
            return

        if result.decision == "unsupported":
            await reply.send_text(result.reason)
            return

        target = next((f for f in recent if f.date_key == result.date_key), None)
        if target is None:
            raise DanglingReferenceError(result.date_key)

        self.session.set_pending_edit(PendingEdit(
            target_date_key=target.date_key,
            updated_full_text=result.full_text,
            revision_token=target.revision_token,
            explanation=result.explanation,
        ))

        text = f"✏️ *Proposed edit for {target.date_key}:*\n\n💬 {result.explanation or 'No explanation given.'}"
        if result.warning:
            text += f"\n\n{result.warning}"
        text += f"\n\n```\n{result.full_text}\n```"
        await reply.send_choices(
            text,
            [
                Choice("✅ Apply edit", Action.APPROVE_EDIT),
                Choice("❌ Discard", Action.REJECT_EDIT),
            ],
        )

    # ═══════════════════════════════════════════════════════
    # Buttons
    # ═══════════════════════════════════════════════════════

    async def handle_button(self, event: ButtonEvent, reply: Responder):
        if not self.is_authorized(event.sender_id):
            logger.warning(f"Ignored '{event.action_id}' click from unauthorized user {event.sender_id}")
            return

        handler = self._button_handlers.get(event.action_id)
        if handler is None:
            logger.warning(f"Unknown button action: {event.action_id}")
            return

        async with self._serialized():
            await self._guarded(event.action_id, handler(event, reply), reply)

    async def _on_accept_proposal(self, event: ButtonEvent, reply: Responder):
        proposal = self.session.take_proposal()
        if proposal is None:
            await reply.send_text(NOTHING_PENDING_REPLY)
            return
        await self._commit(combine_entry(proposal.candidate_text, proposal.image_refs), reply)

    async def _on_reject_proposal(self, event: ButtonEvent, reply: Responder):
        if self.session.take_proposal() is None:
            await reply.send_text(NOTHING_PENDING_REPLY)
            return
        await reply.send_text("👍 No worries! Send me the text you'd like to publish, or ask me to help you write it.")

    async def _on_publish_original(self, event: ButtonEvent, reply: Responder):
        if not event.value:
            await reply.send_text(MISSING_ORIGINAL_REPLY)
            return
        proposal = self.session.take_proposal()
        if proposal is None:
            await reply.send_text(NOTHING_PENDING_REPLY)
            return
        await self._commit(combine_entry(event.value, proposal.image_refs), reply)

    async def _on_treat_as_content(self, event: ButtonEvent, reply: Responder):
        unclear = self.session.unclear
        if unclear is None:
            await reply.send_text(NOTHING_PENDING_REPLY)
            return
        await self._publish_flow(unclear.original_text, unclear.original_message, reply)
        self.session.clear_unclear(unclear)

    async def _on_treat_as_instruction(self, event: ButtonEvent, reply: Responder):
        unclear = self.session.unclear
        if unclear is None:
            await reply.send_text(NOTHING_PENDING_REPLY)
            return
        await self._instruction_flow(unclear.original_text, unclear.original_message, reply)
        self.session.clear_unclear(unclear)

    async def _on_approve_edit(self, event: ButtonEvent, reply: Responder):
        edit = self.session.take_pending_edit()
        if edit is None:
            await reply.send_text(NOTHING_PENDING_REPLY)
            return

        key = edit.target_date_key
        message = f"Edit moments for {key}"
        if edit.explanation:
            message += f": {edit.explanation[:120]}"
        await self.store.write(key, edit.updated_full_text, message, edit.revision_token)
        await reply.send_text(f"✅ Updated moments for {key}!\n\n🔗 {self.store.file_url(key)}")

    async def _on_reject_edit(self, event: ButtonEvent, reply: Responder):
        if self.session.take_pending_edit() is None:
            await reply.send_text(NOTHING_PENDING_REPLY)
            return
        await reply.send_text("👍 Edit discarded. Nothing was changed.")
