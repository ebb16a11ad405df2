"""Telegram Mini App integration — verifies launch init data.

The Mini App client receives a signed query string (initData). It is only
trusted after its hash checks out against the bot token:

    secret = HMAC_SHA256(key="WebAppData", msg=bot_token)
    hash   = hex(HMAC_SHA256(key=secret, msg=data_check_string))

where data_check_string is every other field as "key=value", sorted by key
and joined with newlines.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from urllib.parse import parse_qsl

from family_app.data.models import TelegramIdentity

logger = logging.getLogger(__name__)


class InitDataError(Exception):
    """Raised when Mini App init data is missing, forged or expired."""


def _secret_key(bot_token: str) -> bytes:
    return hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()


def sign_init_data(fields: dict[str, str], bot_token: str) -> str:
    """Compute the hash Telegram would attach to the given fields."""
    check_string = "\n".join(f"{k}={v}" for k, v in sorted(fields.items()))
    return hmac.new(_secret_key(bot_token), check_string.encode(), hashlib.sha256).hexdigest()


def verify_init_data(
    init_data: str,
    bot_token: str,
    max_age_seconds: int = 86400,
    now: float | None = None,
) -> TelegramIdentity:
    """Validate init data and return the identity it carries.

    Raises:
        InitDataError: on a missing/bad hash, stale auth_date or unusable user field.
    """
    if not bot_token:
        raise InitDataError("TELEGRAM_BOT_TOKEN is not configured")

    fields = dict(parse_qsl(init_data, keep_blank_values=True))
    received = fields.pop("hash", None)
    if not received:
        raise InitDataError("init data has no hash")

    expected = sign_init_data(fields, bot_token)
    if not hmac.compare_digest(expected, received):
        logger.warning("Rejected init data with a bad signature")
        raise InitDataError("init data signature mismatch")

    try:
        auth_date = int(fields["auth_date"])
    except (KeyError, ValueError) as exc:
        raise InitDataError("init data has no valid auth_date") from exc

    now = time.time() if now is None else now
    if max_age_seconds and now - auth_date > max_age_seconds:
        logger.warning("Rejected init data older than %ss", max_age_seconds)
        raise InitDataError("init data has expired")

    try:
        user = json.loads(fields["user"])
        return TelegramIdentity(
            telegram_id=user["id"],
            first_name=user["first_name"],
            last_name=user.get("last_name"),
            username=user.get("username"),
            avatar_url=user.get("photo_url"),
            # Private chats with the bot share the user's id.
            chat_id=user["id"] if user.get("allows_write_to_pm") else None,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InitDataError(f"init data has no usable user: {exc}") from exc
