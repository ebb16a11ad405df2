"""
Family App — Notifications.

Renders one Telegram message per notification type and delivers it to every
recipient with a known chat. Delivery is best effort: failures are logged
and never turn a successful write into an error.

Wishlist messages never mention who booked or cancelled.
"""

from __future__ import annotations

import html
import logging
from typing import TYPE_CHECKING, Any, Iterable

from telegram.error import TelegramError

from family_app.data.models import NotificationType
from family_app.ports.data_port import DataError

if TYPE_CHECKING:
    from family_app.ports.data_port import DataSource
    from family_app.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

TEMPLATES: dict[NotificationType, str] = {
    NotificationType.FRIEND_REQUEST: "👋 {actor} хочет добавить вас в друзья",
    NotificationType.FRIEND_ACCEPTED: "🤝 {actor} принял(а) вашу заявку в друзья",
    NotificationType.FAMILY_INVITE: "👨‍👩‍👧 {actor} добавил(а) вас в группу <b>{family}</b>",
    NotificationType.TASK_ASSIGNED: "📝 {actor} назначил(а) вам задачу: <b>{task}</b>",
    NotificationType.EVENT_INVITE: "📅 {actor} приглашает вас: <b>{event}</b>",
    NotificationType.EVENT_RESPONSE: "✉️ {actor} ответил(а) на приглашение <b>{event}</b>: {response}",
    NotificationType.WISHLIST_BOOKED: "🎁 Кто-то забронировал ваше желание <b>{item}</b>",
    NotificationType.WISHLIST_CANCELLED: "🎁 Бронь желания <b>{item}</b> снята",
}

RESPONSE_LABELS = {"going": "пойдёт", "not_going": "не пойдёт"}

_ANONYMOUS = {NotificationType.WISHLIST_BOOKED, NotificationType.WISHLIST_CANCELLED}


def render(kind: NotificationType, actor: str | None = None, **context: Any) -> str:
    """Fill the template for kind. Values are HTML-escaped."""
    values = {k: html.escape(str(v)) for k, v in context.items()}
    if kind not in _ANONYMOUS:
        values["actor"] = html.escape(actor or "Кто-то")
    if kind is NotificationType.EVENT_RESPONSE and "response" in context:
        values["response"] = RESPONSE_LABELS.get(str(context["response"]), values["response"])
    return TEMPLATES[kind].format(**values)


class Notifier:
    """Sends rendered notifications through a NotificationPort."""

    def __init__(self, port: NotificationPort, source: DataSource) -> None:
        self._port = port
        self._source = source

    async def notify(
        self,
        kind: NotificationType,
        recipient_ids: Iterable[str],
        actor_id: str | None = None,
        **context: Any,
    ) -> int:
        """Deliver kind to each recipient except the actor. Returns messages sent."""
        recipients = [uid for uid in dict.fromkeys(recipient_ids) if uid != actor_id]
        if not recipients:
            return 0

        actor_name = None
        if actor_id is not None and kind not in _ANONYMOUS:
            try:
                actor_name = (await self._source.get_user(actor_id)).display_name
            except DataError as exc:
                logger.warning("Could not resolve actor %s for %s: %s", actor_id, kind.value, exc)

        text = render(kind, actor_name, **context)
        sent = 0
        for user_id in recipients:
            try:
                user = await self._source.get_user(user_id)
            except DataError as exc:
                logger.warning("Could not resolve recipient %s: %s", user_id, exc)
                continue
            if user.chat_id is None:
                logger.debug("User %s has no chat, skipping %s", user_id, kind.value)
                continue
            try:
                await self._port.send_message(user.chat_id, text)
                sent += 1
            except TelegramError as exc:
                logger.warning("Failed to notify user %s (%s): %s", user_id, kind.value, exc)
        if sent:
            logger.info("Sent %s notification to %d user(s)", kind.value, sent)
        return sent
