"""System alerts over the Telegram Bot API.

Alerts report operator-facing trouble (validation service unreachable,
parse failures, event dispatch failures).  Every alert is built as a
``TelegramPayload`` per configured chat and kept in a pending buffer.
When a bot token is configured the payloads are also POSTed to the Bot
API.  Alerting never raises.
"""

from __future__ import annotations

import logging
from typing import Literal

import httpx
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

AlertLevel = Literal["info", "warning", "error"]

_LEVEL_MARKERS: dict[str, str] = {
    "info": "ℹ️",
    "warning": "⚠️",
    "error": "\U0001f6a8",
}

_MARKDOWN_V2_SPECIAL = set("_*[]()~`>#+-=|{}.!")


def escape_markdown_v2(text: str) -> str:
    """Escape Telegram MarkdownV2 special characters."""
    return "".join(f"\\{ch}" if ch in _MARKDOWN_V2_SPECIAL else ch for ch in text)


class TelegramPayload(BaseModel):
    """A Telegram Bot API sendMessage payload."""

    model_config = ConfigDict(frozen=True)

    chat_id: str
    text: str
    parse_mode: str = "MarkdownV2"
    disable_web_page_preview: bool = True


class TelegramAlerter:
    """Sends system alerts to every configured chat.

    Parameters
    ----------
    bot_token:
        The Telegram bot token.  Without it, payloads are only buffered.
    chat_ids:
        Chats that receive every alert.
    client:
        Optional shared ``httpx.AsyncClient``.
    timeout:
        Bound in seconds for each Bot API request.
    """

    def __init__(
        self,
        bot_token: str = "",
        chat_ids: list[str] | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._bot_token = bot_token
        self._chat_ids = [c.strip() for c in (chat_ids or []) if c.strip()]
        self._client = client
        self._timeout = timeout
        self._pending_payloads: list[TelegramPayload] = []

    @property
    def pending_count(self) -> int:
        """Return the number of pending payloads."""
        return len(self._pending_payloads)

    def flush(self) -> list[TelegramPayload]:
        """Return and clear all pending payloads."""
        payloads = list(self._pending_payloads)
        self._pending_payloads.clear()
        return payloads

    def build_api_url(self) -> str:
        """Return the sendMessage URL, or an empty string without a token."""
        if not self._bot_token:
            return ""
        return f"https://api.telegram.org/bot{self._bot_token}/sendMessage"

    @staticmethod
    def format_alert(title: str, message: str, level: AlertLevel = "info") -> str:
        marker = _LEVEL_MARKERS.get(level, _LEVEL_MARKERS["info"])
        return f"*{marker} {escape_markdown_v2(title)}*\n\n{escape_markdown_v2(message)}"

    async def send_system_alert(
        self,
        title: str,
        message: str,
        level: AlertLevel = "info",
    ) -> None:
        """Build and deliver one alert to every chat.  Never raises."""
        try:
            text = self.format_alert(title, message, level)
            payloads = [TelegramPayload(chat_id=chat_id, text=text) for chat_id in self._chat_ids]
            self._pending_payloads.extend(payloads)
            if not payloads:
                logger.warning("System alert (no chats configured): %s: %s", title, message)
                return
            url = self.build_api_url()
            if not url:
                logger.debug("TelegramAlerter: no bot token, %d payloads buffered", len(payloads))
                return
            for payload in payloads:
                await self._post(url, payload)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to send system alert %r", title)

    async def _post(self, url: str, payload: TelegramPayload) -> None:
        try:
            if self._client is not None:
                response = await self._client.post(
                    url, json=payload.model_dump(), timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, json=payload.model_dump())
            if response.status_code != 200:
                logger.error(
                    "Telegram API error for chat %s: HTTP %d",
                    payload.chat_id,
                    response.status_code,
                )
        except httpx.HTTPError as exc:
            logger.error("Failed to send Telegram message to %s: %s", payload.chat_id, exc)
