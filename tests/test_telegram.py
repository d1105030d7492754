"""Tests for the Telegram adapter: callback payloads, attachments, replies."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from moments.channels.telegram import (
    PayloadTable,
    TelegramChannel,
    TelegramResponder,
    attachments_from_message,
    decode_callback,
    encode_callback,
)
from moments.communication.outbound import Choice


class TestCallbackData:
    def test_action_only(self):
        payloads = PayloadTable()
        assert encode_callback("approve_edit", None, payloads) == "approve_edit"
        assert decode_callback("approve_edit", payloads) == ("approve_edit", None)

    def test_short_value_inline(self):
        payloads = PayloadTable()
        data = encode_callback("publish_original", "hi there", payloads)

        assert data == "publish_original|v:hi there"
        assert decode_callback(data, payloads) == ("publish_original", "hi there")

    def test_long_value_uses_payload_table(self):
        payloads = PayloadTable()
        value = "A long original moment " * 10

        data = encode_callback("publish_original", value, payloads)

        assert len(data.encode("utf-8")) <= 64
        assert data.startswith("publish_original|p:")
        assert decode_callback(data, payloads) == ("publish_original", value)

    def test_value_containing_separator(self):
        payloads = PayloadTable()
        data = encode_callback("publish_original", "a|b", payloads)
        assert decode_callback(data, payloads) == ("publish_original", "a|b")

    def test_evicted_payload_decodes_to_none(self):
        payloads = PayloadTable(max_entries=1)
        first = encode_callback("publish_original", "x" * 100, payloads)
        encode_callback("publish_original", "y" * 100, payloads)

        assert decode_callback(first, payloads) == ("publish_original", None)


class TestAttachments:
    def test_largest_photo_and_document(self):
        message = SimpleNamespace(
            photo=[
                SimpleNamespace(file_id="small", file_unique_id="u1"),
                SimpleNamespace(file_id="large", file_unique_id="u2"),
            ],
            document=SimpleNamespace(file_id="doc", file_name="pic.webp", mime_type="image/webp"),
        )

        refs = attachments_from_message(message)

        assert [(r.file_id, r.mime_type) for r in refs] == [("large", "image/jpeg"), ("doc", "image/webp")]
        assert refs[0].name == "photo-u2.jpg"

    def test_no_media(self):
        assert attachments_from_message(SimpleNamespace(photo=[], document=None)) == ()


class TestResponder:
    @pytest.mark.asyncio
    async def test_choices_become_one_keyboard_row(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()
        responder = TelegramResponder(bot, chat_id=7, payloads=PayloadTable())

        await responder.send_choices("Pick one", [Choice("✅ Yes", "accept_suggestion"), Choice("❌ No", "reject_suggestion")])

        kwargs = bot.send_message.await_args.kwargs
        assert kwargs["chat_id"] == 7
        assert kwargs["parse_mode"] == "HTML"
        row = kwargs["reply_markup"].inline_keyboard[0]
        assert [b.callback_data for b in row] == ["accept_suggestion", "reject_suggestion"]

    @pytest.mark.asyncio
    async def test_falls_back_to_plain_text(self):
        bot = MagicMock()
        bot.send_message = AsyncMock(side_effect=[RuntimeError("can't parse entities"), None])
        responder = TelegramResponder(bot, chat_id=7, payloads=PayloadTable())

        await responder.send_text("**bold** <tag>")

        assert bot.send_message.await_count == 2
        plain = bot.send_message.await_args.kwargs
        assert plain["text"] == "**bold** <tag>"
        assert "parse_mode" not in plain


class TestCallbackHandler:
    def _update(self, user_id, data):
        query = MagicMock()
        query.data = data
        query.from_user = SimpleNamespace(id=user_id)
        query.message = SimpleNamespace(chat_id=55)
        query.answer = AsyncMock()
        query.edit_message_reply_markup = AsyncMock()
        return SimpleNamespace(callback_query=query), query

    def _channel(self, authorized: bool):
        orchestrator = MagicMock()
        orchestrator.is_authorized = MagicMock(return_value=authorized)
        orchestrator.handle_button = AsyncMock()
        return TelegramChannel("token", orchestrator), orchestrator

    @pytest.mark.asyncio
    async def test_authorized_click_removes_keyboard(self):
        channel, orchestrator = self._channel(authorized=True)
        update, query = self._update(4242, "publish_original|v:hello")
        context = SimpleNamespace(bot=MagicMock(send_chat_action=AsyncMock()))

        await channel._handle_callback(update, context)

        query.answer.assert_awaited_once()
        query.edit_message_reply_markup.assert_awaited_once_with(reply_markup=None)
        event = orchestrator.handle_button.await_args.args[0]
        assert (event.sender_id, event.action_id, event.value) == (4242, "publish_original", "hello")

    @pytest.mark.asyncio
    async def test_unauthorized_click_keeps_keyboard(self):
        channel, orchestrator = self._channel(authorized=False)
        update, query = self._update(1, "approve_edit")
        context = SimpleNamespace(bot=MagicMock(send_chat_action=AsyncMock()))

        await channel._handle_callback(update, context)

        query.edit_message_reply_markup.assert_not_awaited()
        orchestrator.handle_button.assert_awaited_once()
