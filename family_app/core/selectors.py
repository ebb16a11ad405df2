"""
Family App — Derived View Selectors.

Pure projections over raw entity collections: task splits, a user's events,
friend lists, and the anonymized wishlist view. Nothing here mutates its
inputs; records that need a different shape are copied with replace().
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from family_app.data.models import (
    Event,
    FamilyGroup,
    FriendRequest,
    FriendRequestStatus,
    Friendship,
    Task,
    TaskCategory,
    TaskStatus,
    TaskType,
    User,
    WishlistItem,
)

SEARCH_LIMIT = 20


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def filter_tasks(tasks: list[Task], family_id: str, status: str = "all") -> list[Task]:
    """Tasks of one family, optionally restricted to a single status."""
    family_tasks = [t for t in tasks if t.family_id == family_id]
    if status == "all":
        return family_tasks
    wanted = TaskStatus(status)
    return [t for t in family_tasks if t.status is wanted]


def split_tasks(tasks: list[Task]) -> tuple[list[Task], list[Task]]:
    """Split into (main list, archive).

    The main list keeps completed tasks visible next to active ones until
    they are archived.
    """
    visible = [t for t in tasks if t.status is not TaskStatus.ARCHIVED]
    archived = [t for t in tasks if t.status is TaskStatus.ARCHIVED]
    return visible, archived


def categories_by_type(categories: list[TaskCategory]) -> dict[TaskType, list[TaskCategory]]:
    grouped: dict[TaskType, list[TaskCategory]] = {t: [] for t in TaskType}
    for category in sorted(categories, key=lambda c: c.order):
        grouped[category.type].append(category)
    return grouped


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def events_for_user(events: list[Event], user_id: str) -> list[Event]:
    """Events the user created, was invited to, or already responded to."""
    return [
        e for e in events
        if e.created_by == user_id
        or user_id in e.invited_users
        or e.participant(user_id) is not None
    ]


def is_past(event: Event, now: datetime | None = None) -> bool:
    """Whether the event has started. Responses stay editable regardless."""
    now = now or datetime.now(timezone.utc)
    return event.starts_at < now


# ---------------------------------------------------------------------------
# Wishlist
# ---------------------------------------------------------------------------


def own_wishlist(items: list[WishlistItem], user_id: str) -> list[WishlistItem]:
    return [i for i in items if i.user_id == user_id]


def anonymize_wishlist(items: list[WishlistItem], viewer_id: str | None) -> list[WishlistItem]:
    """Hide who booked an item, and when, from everyone except the booker.

    is_booked stays visible so the owner still knows a wish is taken.
    """
    return [
        item if item.booked_by is not None and item.booked_by == viewer_id
        else replace(item, booked_by=None, booked_at=None)
        for item in items
    ]


# ---------------------------------------------------------------------------
# Friends and people
# ---------------------------------------------------------------------------


def friend_ids(friendships: list[Friendship], user_id: str) -> list[str]:
    return [f.friend_id for f in friendships if f.user_id == user_id]


def friends_of(users: list[User], friendships: list[Friendship], user_id: str) -> list[User]:
    ids = friend_ids(friendships, user_id)
    return [u for u in users if u.id in ids]


def is_friend(friendships: list[Friendship], user_id: str, other_id: str) -> bool:
    return any(f.user_id == user_id and f.friend_id == other_id for f in friendships)


def pending_incoming(
    requests: list[FriendRequest], user_id: str, users: list[User] | None = None
) -> list[FriendRequest]:
    """Pending requests addressed to the user, with the sender joined in."""
    by_id = {u.id: u for u in users or []}
    return [
        replace(r, sender=r.sender or by_id.get(r.sender_id))
        for r in requests
        if r.receiver_id == user_id and r.status is FriendRequestStatus.PENDING
    ]


def pending_outgoing(requests: list[FriendRequest], user_id: str) -> list[FriendRequest]:
    return [
        r for r in requests
        if r.sender_id == user_id and r.status is FriendRequestStatus.PENDING
    ]


def pending_outgoing_ids(requests: list[FriendRequest], user_id: str) -> set[str]:
    """Users the current user already has a pending request out to."""
    return {r.receiver_id for r in pending_outgoing(requests, user_id)}


def search_users(
    users: list[User],
    query: str | None,
    exclude_id: str | None = None,
    limit: int = SEARCH_LIMIT,
) -> list[User]:
    """Case-insensitive match on username, first or last name."""
    needle = (query or "").strip().lower().lstrip("@")
    found = []
    for user in users:
        if user.id == exclude_id:
            continue
        haystack = [user.username, user.first_name, user.last_name]
        if needle and not any(needle in (h or "").lower() for h in haystack):
            continue
        found.append(user)
        if len(found) >= limit:
            break
    return found


# ---------------------------------------------------------------------------
# Families
# ---------------------------------------------------------------------------


def families_of(families: list[FamilyGroup], user_id: str) -> list[FamilyGroup]:
    return [f for f in families if f.member(user_id) is not None]


def with_member_users(family: FamilyGroup, users: list[User]) -> FamilyGroup:
    """Copy of the family with each member's User record joined in."""
    by_id = {u.id: u for u in users}
    members = [replace(m, user=m.user or by_id.get(m.user_id)) for m in family.members]
    return replace(family, members=members)


def family_members(family: FamilyGroup | None, users: list[User] | None = None) -> list[User]:
    """Flatten a family's member list to User records."""
    if family is None:
        return []
    by_id = {u.id: u for u in users or []}
    flat = []
    for member in family.members:
        user = member.user or by_id.get(member.user_id)
        if user is not None:
            flat.append(user)
    return flat
