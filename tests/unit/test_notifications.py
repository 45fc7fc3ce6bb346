"""Tests for Telegram system alerts and submitter diagnostic emails."""

from __future__ import annotations

import httpx
import pytest

from peppolgate.notifications.email import SUBMISSION_ERROR_SUBJECT, EmailNotifier, EmailPayload
from peppolgate.notifications.telegram import TelegramAlerter, escape_markdown_v2

BOT_URL = "https://api.telegram.org/botbot-token/sendMessage"


class TestTelegramAlerter:
    def test_markdown_escaping(self):
        assert escape_markdown_v2("doc_1 (v2.0)!") == r"doc\_1 \(v2\.0\)\!"

    def test_format_alert(self):
        text = TelegramAlerter.format_alert("Parse failure", "doc-1 failed.", "error")
        assert text.startswith("*\U0001f6a8 Parse failure*")
        assert text.endswith(r"doc\-1 failed\.")

    def test_api_url_requires_token(self):
        assert TelegramAlerter().build_api_url() == ""
        assert TelegramAlerter("bot-token").build_api_url() == BOT_URL

    @pytest.mark.asyncio
    async def test_no_chats_buffers_nothing(self):
        alerter = TelegramAlerter("bot-token")
        await alerter.send_system_alert("Title", "Message")
        assert alerter.pending_count == 0

    @pytest.mark.asyncio
    async def test_no_token_only_buffers(self):
        alerter = TelegramAlerter(chat_ids=["100", " ", "200"])
        await alerter.send_system_alert("Validation down", "Timed out", "warning")
        payloads = alerter.flush()
        assert [p.chat_id for p in payloads] == ["100", "200"]
        assert payloads[0].parse_mode == "MarkdownV2"
        assert alerter.pending_count == 0

    @pytest.mark.asyncio
    async def test_posts_one_message_per_chat(self, make_http):
        http, handler = make_http({BOT_URL: lambda request: httpx.Response(200, json={"ok": True})})
        alerter = TelegramAlerter("bot-token", ["100", "200"], client=http)
        await alerter.send_system_alert("Title", "Message")
        assert [body["chat_id"] for body in handler.bodies()] == ["100", "200"]
        assert alerter.pending_count == 2

    @pytest.mark.asyncio
    async def test_api_failures_never_raise(self, make_http):
        def _refuse(request):
            raise httpx.ConnectError("refused", request=request)

        http, handler = make_http({BOT_URL: _refuse})
        alerter = TelegramAlerter("bot-token", ["100"], client=http)
        await alerter.send_system_alert("Title", "Message")
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_error_status_never_raises(self, make_http):
        http, _ = make_http({BOT_URL: lambda request: httpx.Response(401)})
        await TelegramAlerter("bot-token", ["100"], client=http).send_system_alert("T", "M")


class TestEmailNotifier:
    @pytest.mark.asyncio
    async def test_builds_payload(self):
        notifier = EmailNotifier(sender="ap@node.test")
        payload = await notifier.notify_submission_error(
            "buyer@example.test",
            error="Recipient Peppol address not found",
            details="Check AccountingCustomerParty",
            entity_name="Seller BV",
        )
        assert payload.sender == "ap@node.test"
        assert payload.subject == SUBMISSION_ERROR_SUBJECT
        assert payload.body_text.splitlines() == [
            "We could not process your document: Recipient Peppol address not found",
            "Company: Seller BV",
            "",
            "Check AccountingCustomerParty",
        ]
        assert notifier.flush() == [payload]
        assert notifier.pending_count == 0

    @pytest.mark.asyncio
    async def test_sync_and_async_delivery(self):
        delivered: list[EmailPayload] = []

        async def _deliver_async(payload: EmailPayload) -> None:
            delivered.append(payload)

        await EmailNotifier(deliver=delivered.append).notify_submission_error("a@x.test", error="e1")
        await EmailNotifier(deliver=_deliver_async).notify_submission_error("b@x.test", error="e2")
        assert [p.recipient for p in delivered] == ["a@x.test", "b@x.test"]

    @pytest.mark.asyncio
    async def test_delivery_failure_is_swallowed(self):
        def _broken(payload: EmailPayload) -> None:
            raise ConnectionError("smtp down")

        notifier = EmailNotifier(deliver=_broken)
        payload = await notifier.notify_submission_error("a@x.test", error="boom")
        assert payload.error == "boom"
        assert notifier.pending_count == 1
