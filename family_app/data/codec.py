"""Record <-> JSON-dict conversion.

Used for the local snapshot and for REST payloads. Decoders accept the
joined keys the server adds (category, creator, assignedUsers, ...) and
ignore anything they do not know about.
"""

from __future__ import annotations

from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any

from family_app.data.models import (
    Event,
    EventParticipant,
    FamilyGroup,
    FamilyMember,
    FriendRequest,
    Friendship,
    Task,
    TaskCategory,
    User,
    WishlistItem,
)


def encode(record: Any) -> Any:
    """Convert a record (or a list of records) to JSON-safe primitives."""
    if isinstance(record, Enum):
        return record.value
    if is_dataclass(record) and not isinstance(record, type):
        return {f.name: encode(getattr(record, f.name)) for f in fields(record)}
    if isinstance(record, list):
        return [encode(item) for item in record]
    if isinstance(record, dict):
        return {key: encode(value) for key, value in record.items()}
    return record


def _known(cls: type, row: dict) -> dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in row.items() if k in names}


def decode_user(row: dict) -> User:
    return User(**_known(User, row))


def _maybe_user(row: dict | None) -> User | None:
    return decode_user(row) if row else None


def decode_member(row: dict) -> FamilyMember:
    data = _known(FamilyMember, row)
    data["user"] = _maybe_user(row.get("user"))
    return FamilyMember(**data)


def decode_family(row: dict) -> FamilyGroup:
    data = _known(FamilyGroup, row)
    data["members"] = [decode_member(m) for m in row.get("members") or []]
    return FamilyGroup(**data)


def decode_friendship(row: dict) -> Friendship:
    return Friendship(**_known(Friendship, row))


def decode_friend_request(row: dict) -> FriendRequest:
    data = _known(FriendRequest, row)
    data["sender"] = _maybe_user(row.get("sender"))
    return FriendRequest(**data)


def decode_category(row: dict) -> TaskCategory:
    return TaskCategory(**_known(TaskCategory, row))


def decode_task(row: dict) -> Task:
    data = _known(Task, row)
    data["assigned_to"] = list(row.get("assigned_to") or [])
    return Task(**data)


def decode_participant(row: dict) -> EventParticipant:
    data = _known(EventParticipant, row)
    data["user"] = _maybe_user(row.get("user"))
    return EventParticipant(**data)


def decode_event(row: dict) -> Event:
    data = _known(Event, row)
    data["invited_users"] = list(row.get("invited_users") or [])
    data["participants"] = [decode_participant(p) for p in row.get("participants") or []]
    return Event(**data)


def decode_wishlist_item(row: dict) -> WishlistItem:
    return WishlistItem(**_known(WishlistItem, row))
