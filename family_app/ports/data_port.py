"""Data port — abstract interface for every read and write the app performs.

Query code depends on this protocol, never on a specific mode. The local
adapter mutates the entity store; the REST adapter talks to the HTTP boundary.
Both raise only DataError subclasses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Generic, Protocol, TypeVar

if TYPE_CHECKING:
    from family_app.data.models import (
        Event,
        EventDraft,
        EventResponse,
        FamilyGroup,
        FriendRequest,
        Task,
        TaskCategory,
        TaskDraft,
        TelegramIdentity,
        User,
        WishlistDraft,
        WishlistItem,
    )

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Error taxonomy
# ---------------------------------------------------------------------------


class DataError(Exception):
    """Raised when any data operation fails, in either mode."""

    kind = "error"


class TransportError(DataError):
    """Network failure, timeout, unexpected HTTP status or malformed payload."""

    kind = "transport"


class NotFoundError(DataError):
    """The referenced entity does not exist."""

    kind = "not_found"


class ConflictError(DataError):
    """The entity is not in a state that allows the requested transition."""

    kind = "conflict"


class InvalidInputError(DataError):
    """Missing or invalid fields in a write."""

    kind = "invalid"


# ---------------------------------------------------------------------------
# Uniform result shape
# ---------------------------------------------------------------------------


@dataclass
class Result(Generic[T]):
    """The {data, error} shape every read resolves to."""

    data: T | None = None
    error: str | None = None
    kind: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def capture(awaitable: Awaitable[T]) -> Result[T]:
    """Await a data operation and fold a DataError into a Result."""
    try:
        return Result(data=await awaitable)
    except DataError as exc:
        logger.warning("Data operation failed (%s): %s", exc.kind, exc)
        return Result(error=str(exc) or exc.kind, kind=exc.kind)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class DataSource(Protocol):
    """Abstract data access used by the query layer."""

    # Users
    async def get_user(self, user_id: str) -> User: ...

    async def list_users(self, search: str | None = None) -> list[User]: ...

    async def upsert_user(self, identity: TelegramIdentity) -> User: ...

    async def update_user(self, user_id: str, changes: dict[str, Any]) -> User: ...

    # Families
    async def list_families(self, user_id: str) -> list[FamilyGroup]: ...

    async def create_family(self, name: str, created_by: str) -> FamilyGroup: ...

    async def invite_to_family(self, family_id: str, user_id: str) -> None: ...

    async def leave_family(self, family_id: str, user_id: str) -> None: ...

    async def remove_member(self, family_id: str, user_id: str) -> None: ...

    # Tasks
    async def list_tasks(self, family_id: str, status: str = "all") -> list[Task]: ...

    async def list_categories(self) -> list[TaskCategory]: ...

    async def create_task(self, draft: TaskDraft) -> Task: ...

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Task: ...

    async def complete_task(self, task_id: str, actor_id: str) -> Task: ...

    async def archive_task(self, task_id: str) -> Task: ...

    async def delete_task(self, task_id: str) -> None: ...

    # Events
    async def list_events(self, user_id: str) -> list[Event]: ...

    async def create_event(self, draft: EventDraft) -> Event: ...

    async def update_event(
        self, event_id: str, actor_id: str, changes: dict[str, Any]
    ) -> Event: ...

    async def respond_to_event(
        self, event_id: str, user_id: str, response: EventResponse
    ) -> None: ...

    async def delete_event(self, event_id: str) -> None: ...

    # Wishlist
    async def list_wishlist(self, user_id: str, viewer_id: str) -> list[WishlistItem]: ...

    async def create_wishlist_item(self, draft: WishlistDraft) -> WishlistItem: ...

    async def update_wishlist_item(
        self, item_id: str, user_id: str, changes: dict[str, Any]
    ) -> WishlistItem: ...

    async def book_item(self, item_id: str, user_id: str) -> None: ...

    async def cancel_booking(self, item_id: str, user_id: str) -> None: ...

    async def delete_wishlist_item(self, item_id: str, user_id: str) -> None: ...

    # Friends
    async def list_friends(self, user_id: str) -> list[User]: ...

    async def list_friend_requests(self, user_id: str) -> list[FriendRequest]: ...

    async def list_sent_requests(self, user_id: str) -> list[FriendRequest]: ...

    async def send_friend_request(self, sender_id: str, receiver_id: str) -> FriendRequest: ...

    async def accept_friend_request(self, request_id: str, user_id: str) -> None: ...

    async def decline_friend_request(self, request_id: str, user_id: str) -> None: ...

    async def remove_friend(self, user_id: str, friend_id: str) -> None: ...
