"""Submitter diagnostics (email) and operator alerts (Telegram)."""

from peppolgate.notifications.email import EmailNotifier, EmailPayload
from peppolgate.notifications.telegram import TelegramAlerter, TelegramPayload

__all__ = ["EmailNotifier", "EmailPayload", "TelegramAlerter", "TelegramPayload"]
