"""Notification port — delivery of rendered messages to a user's chat.

The Notifier renders text and picks recipients; an adapter only delivers.
Text is Telegram HTML.
"""

from __future__ import annotations

from typing import Protocol


class NotificationPort(Protocol):
    """Delivers one message to one chat. Failures surface as TelegramError."""

    async def send_message(self, chat_id: int, text: str) -> None: ...
