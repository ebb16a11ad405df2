"""Local data adapter — implements DataSource over the entity store.

Store calls are synchronous; they are wrapped in coroutines so callers use
the same interface in both modes. Record and draft validation failures come
out as InvalidInputError; store errors pass through unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from pydantic import ValidationError

from family_app.core import selectors
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
from family_app.data.store import EntityStore
from family_app.ports.data_port import InvalidInputError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _run(fn: Callable[..., T], *args: Any) -> T:
    try:
        return fn(*args)
    except (ValidationError, ValueError) as exc:
        raise InvalidInputError(str(exc)) from exc


class LocalDataSource:
    """Local-mode implementation of DataSource."""

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    @property
    def store(self) -> EntityStore:
        return self._store

    # Users

    async def get_user(self, user_id: str) -> User:
        return self._store.get_user(user_id)

    async def list_users(self, search: str | None = None) -> list[User]:
        if search is None:
            return self._store.users
        return selectors.search_users(
            self._store.users, search, exclude_id=self._store.current_user_id
        )

    async def upsert_user(self, identity: TelegramIdentity) -> User:
        return _run(self._store.upsert_user, identity)

    async def update_user(self, user_id: str, changes: dict[str, Any]) -> User:
        return _run(self._store.update_user, user_id, changes)

    # Families

    async def list_families(self, user_id: str) -> list[FamilyGroup]:
        users = self._store.users
        return [
            selectors.with_member_users(f, users)
            for f in selectors.families_of(self._store.families, user_id)
        ]

    async def create_family(self, name: str, created_by: str) -> FamilyGroup:
        return _run(self._store.create_family, name, created_by)

    async def invite_to_family(self, family_id: str, user_id: str) -> None:
        _run(self._store.invite_to_family, family_id, user_id)

    async def leave_family(self, family_id: str, user_id: str) -> None:
        _run(self._store.leave_family, family_id, user_id)

    async def remove_member(self, family_id: str, user_id: str) -> None:
        _run(self._store.remove_member, family_id, user_id)

    # Tasks

    async def list_tasks(self, family_id: str, status: str = "all") -> list[Task]:
        return _run(selectors.filter_tasks, self._store.tasks, family_id, status)

    async def list_categories(self) -> list[TaskCategory]:
        return sorted(self._store.categories, key=lambda c: (c.type.value, c.order))

    async def create_task(self, draft: TaskDraft) -> Task:
        return _run(self._store.add_task, draft)

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        return _run(self._store.update_task, task_id, changes)

    async def complete_task(self, task_id: str, actor_id: str) -> Task:
        return _run(self._store.complete_task, task_id, actor_id)

    async def archive_task(self, task_id: str) -> Task:
        return _run(self._store.archive_task, task_id)

    async def delete_task(self, task_id: str) -> None:
        _run(self._store.delete_task, task_id)

    # Events

    async def list_events(self, user_id: str) -> list[Event]:
        return selectors.events_for_user(self._store.events, user_id)

    async def create_event(self, draft: EventDraft) -> Event:
        return _run(self._store.add_event, draft)

    async def update_event(self, event_id: str, actor_id: str, changes: dict[str, Any]) -> Event:
        return _run(self._store.update_event, event_id, actor_id, changes)

    async def respond_to_event(self, event_id: str, user_id: str, response: EventResponse) -> None:
        _run(self._store.respond_to_event, event_id, user_id, response)

    async def delete_event(self, event_id: str) -> None:
        _run(self._store.delete_event, event_id)

    # Wishlist

    async def list_wishlist(self, user_id: str, viewer_id: str) -> list[WishlistItem]:
        items = selectors.own_wishlist(self._store.wishlist_items, user_id)
        return selectors.anonymize_wishlist(items, viewer_id)

    async def create_wishlist_item(self, draft: WishlistDraft) -> WishlistItem:
        return _run(self._store.add_wishlist_item, draft)

    async def update_wishlist_item(
        self, item_id: str, user_id: str, changes: dict[str, Any]
    ) -> WishlistItem:
        item = _run(self._store.update_wishlist_item, item_id, user_id, changes)
        return selectors.anonymize_wishlist([item], user_id)[0]

    async def book_item(self, item_id: str, user_id: str) -> None:
        _run(self._store.book_wishlist_item, item_id, user_id)

    async def cancel_booking(self, item_id: str, user_id: str) -> None:
        _run(self._store.cancel_booking, item_id, user_id)

    async def delete_wishlist_item(self, item_id: str, user_id: str) -> None:
        _run(self._store.delete_wishlist_item, item_id, user_id)

    # Friends

    async def list_friends(self, user_id: str) -> list[User]:
        return selectors.friends_of(self._store.users, self._store.friendships, user_id)

    async def list_friend_requests(self, user_id: str) -> list[FriendRequest]:
        return selectors.pending_incoming(
            self._store.friend_requests, user_id, self._store.users
        )

    async def list_sent_requests(self, user_id: str) -> list[FriendRequest]:
        return selectors.pending_outgoing(self._store.friend_requests, user_id)

    async def send_friend_request(self, sender_id: str, receiver_id: str) -> FriendRequest:
        return _run(self._store.send_friend_request, sender_id, receiver_id)

    async def accept_friend_request(self, request_id: str, user_id: str) -> None:
        _run(self._store.accept_friend_request, request_id, user_id)

    async def decline_friend_request(self, request_id: str, user_id: str) -> None:
        _run(self._store.decline_friend_request, request_id, user_id)

    async def remove_friend(self, user_id: str, friend_id: str) -> None:
        _run(self._store.remove_friend, user_id, friend_id)
