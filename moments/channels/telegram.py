"""Telegram channel adapter.

Turns Telegram updates into InboundMessage / ButtonEvent values for the
orchestrator, and renders its replies (text, inline keyboards) back.
"""

import asyncio
import hashlib
import logging
from collections import OrderedDict
from typing import Optional

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from ..communication.formatting import markdown_to_telegram_html
from ..communication.inbound import AttachmentRef, ButtonEvent, InboundMessage
from ..communication.outbound import Choice, clean_outbound, split_message
from ..orchestrator import Orchestrator

logger = logging.getLogger("moments.telegram")

# Telegram limits callback_data to 64 bytes
_CALLBACK_DATA_LIMIT = 64
_MAX_STORED_PAYLOADS = 256


class _TypingIndicator:
    """Keeps sending 'typing' action every 4s until the wrapped work ends.

    Auto-stops after max_duration seconds even if the work hangs.
    """

    def __init__(self, bot: Bot, chat_id: int, interval: float = 4.0, max_duration: float = 300.0):
        self._bot = bot
        self._chat_id = chat_id
        self._interval = interval
        self._max_duration = max_duration
        self._task: Optional[asyncio.Task] = None

    async def _loop(self):
        loop = asyncio.get_running_loop()
        start = loop.time()
        try:
            while loop.time() - start < self._max_duration:
                await self._bot.send_chat_action(self._chat_id, "typing")
                await asyncio.sleep(self._interval)
            logger.warning(f"Typing indicator timeout ({self._max_duration}s) for chat {self._chat_id}")
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Typing indicator stopped: {e}")

    async def __aenter__(self):
        self._task = asyncio.create_task(self._loop())
        return self

    async def __aexit__(self, *exc):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass


class PayloadTable:
    """Short ids for button values too long for callback_data.

    Bounded: the oldest entries are dropped first, which makes their
    buttons report a missing value.
    """

    def __init__(self, max_entries: int = _MAX_STORED_PAYLOADS):
        self.max_entries = max_entries
        self._values: OrderedDict[str, str] = OrderedDict()

    def put(self, value: str) -> str:
        short = hashlib.md5(value.encode("utf-8")).hexdigest()[:10]
        self._values[short] = value
        self._values.move_to_end(short)
        while len(self._values) > self.max_entries:
            self._values.popitem(last=False)
        return short

    def get(self, short: str) -> Optional[str]:
        return self._values.get(short)


def encode_callback(action_id: str, value: Optional[str], payloads: PayloadTable) -> str:
    """callback_data for a choice: ``action`` or ``action|v:<value>`` or ``action|p:<id>``."""
    if value is None:
        return action_id
    inline = f"{action_id}|v:{value}"
    if len(inline.encode("utf-8")) <= _CALLBACK_DATA_LIMIT:
        return inline
    return f"{action_id}|p:{payloads.put(value)}"


def decode_callback(data: str, payloads: PayloadTable) -> tuple[str, Optional[str]]:
    action_id, sep, rest = data.partition("|")
    if not sep:
        return action_id, None
    if rest.startswith("v:"):
        return action_id, rest[2:]
    if rest.startswith("p:"):
        return action_id, payloads.get(rest[2:])
    return action_id, None


def attachments_from_message(message) -> tuple[AttachmentRef, ...]:
    """Photos (largest size) and image documents of a Telegram message."""
    refs = []
    if message.photo:
        largest = message.photo[-1]
        refs.append(AttachmentRef(file_id=largest.file_id, name=f"photo-{largest.file_unique_id}.jpg",
                                  mime_type="image/jpeg"))
    document = message.document
    if document and document.mime_type:
        refs.append(AttachmentRef(file_id=document.file_id, name=document.file_name or "image",
                                  mime_type=document.mime_type))
    return tuple(refs)


class TelegramResponder:
    """Responder bound to one chat."""

    def __init__(self, bot: Bot, chat_id: int, payloads: PayloadTable):
        self.bot = bot
        self.chat_id = chat_id
        self.payloads = payloads

    async def _send(self, text: str, reply_markup: Optional[InlineKeyboardMarkup] = None):
        text = clean_outbound(text)
        chunks = split_message(text)
        for i, chunk in enumerate(chunks):
            # Keyboard goes on the last chunk only
            markup = reply_markup if i == len(chunks) - 1 else None
            try:
                await self.bot.send_message(
                    chat_id=self.chat_id,
                    text=markdown_to_telegram_html(chunk),
                    parse_mode="HTML",
                    reply_markup=markup,
                )
            except Exception as e:
                # HTML parse failed, send as plain text
                logger.debug(f"HTML send failed, retrying as plain text: {e}")
                await self.bot.send_message(chat_id=self.chat_id, text=chunk, reply_markup=markup)

    async def send_text(self, text: str) -> None:
        await self._send(text)

    async def send_choices(self, text: str, choices: list[Choice]) -> None:
        row = [
            InlineKeyboardButton(c.label, callback_data=encode_callback(c.action_id, c.value, self.payloads))
            for c in choices
        ]
        await self._send(text, InlineKeyboardMarkup([row]))


class TelegramChannel:
    """Telegram bot adapter for Moments (DM only, polling)."""

    def __init__(self, bot_token: str, orchestrator: Optional[Orchestrator] = None):
        self.bot_token = bot_token
        self.orchestrator = orchestrator
        self.app: Optional[Application] = None
        self.payloads = PayloadTable()

    def bind(self, orchestrator: Orchestrator):
        self.orchestrator = orchestrator

    async def start(self):
        """Start the Telegram bot."""
        if self.orchestrator is None:
            raise RuntimeError("TelegramChannel.start() called before an orchestrator was bound")

        self.app = Application.builder().token(self.bot_token).build()

        self.app.add_handler(CommandHandler(["start", "help"], self._cmd_help))
        self.app.add_handler(MessageHandler(
            filters.ChatType.PRIVATE & ((filters.TEXT & ~filters.COMMAND) | filters.PHOTO | filters.Document.IMAGE),
            self._handle_message,
        ))
        self.app.add_handler(CallbackQueryHandler(self._handle_callback))
        self.app.add_error_handler(self._handle_error)

        logger.info("Starting Telegram bot...")
        await self.app.initialize()
        await self.app.start()
        await self.app.updater.start_polling(drop_pending_updates=True)
        logger.info("Telegram bot started.")

    async def stop(self):
        """Stop the Telegram bot."""
        if self.app:
            await self.app.updater.stop()
            await self.app.stop()
            await self.app.shutdown()
            logger.info("Telegram bot stopped.")

    async def download_attachment(self, attachment: AttachmentRef) -> bytes:
        """Download an attachment's bytes (used by the image pipeline)."""
        if not self.app:
            raise RuntimeError("Telegram bot not started")
        tg_file = await self.app.bot.get_file(attachment.file_id)
        data = await tg_file.download_as_bytearray()
        logger.info(f"Downloaded {attachment.name}: {len(data)} bytes")
        return bytes(data)

    def _responder(self, bot: Bot, chat_id: int) -> TelegramResponder:
        return TelegramResponder(bot, chat_id, self.payloads)

    # ── Handlers ─────────────────────────────────────────────

    async def _cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not update.message:
            return
        message = InboundMessage(sender_id=update.effective_user.id, text="help")
        await self.orchestrator.handle_message(message, self._responder(context.bot, update.effective_chat.id))

    async def _handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle text, photos and image documents."""
        msg = update.message
        if not msg:
            return

        user = update.effective_user
        chat = update.effective_chat
        message = InboundMessage(
            sender_id=user.id,
            text=msg.text or msg.caption,
            attachments=attachments_from_message(msg),
        )
        logger.info(
            f"[{chat.type}] {user.first_name} ({user.id}): {(message.text or '')[:100]}"
            f"{f' [+{len(message.attachments)} file(s)]' if message.attachments else ''}"
        )

        async with _TypingIndicator(context.bot, chat.id):
            await self.orchestrator.handle_message(message, self._responder(context.bot, chat.id))

    async def _handle_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle inline button clicks."""
        query = update.callback_query
        await query.answer()

        action_id, value = decode_callback(query.data or "", self.payloads)
        chat_id = query.message.chat_id if query.message else query.from_user.id

        # Buttons are single-use; drop the keyboard (best-effort)
        if self.orchestrator.is_authorized(query.from_user.id):
            try:
                await query.edit_message_reply_markup(reply_markup=None)
            except Exception as e:
                logger.debug(f"Could not remove keyboard: {e}")

        event = ButtonEvent(sender_id=query.from_user.id, action_id=action_id, value=value)
        async with _TypingIndicator(context.bot, chat_id):
            await self.orchestrator.handle_button(event, self._responder(context.bot, chat_id))

    async def _handle_error(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        """Handle errors."""
        logger.error(f"Telegram error: {context.error}", exc_info=context.error)
