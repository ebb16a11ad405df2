"""
Family App — Feature Queries.

One query object per feature area (current user, families, tasks,
categories, events, wishlist, friends, user profile). Each one declares its
cache key, loads through the QueryClient, exposes a synchronous view built
from the entity store in local mode so there is never an empty first frame,
and carries mutations that invalidate exactly the keys they affect.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from family_app.core import selectors
from family_app.core.query_client import Mutation, QueryClient, QueryKey
from family_app.data.models import (
    Event,
    EventResponse,
    FamilyGroup,
    FriendRequest,
    NotificationType,
    Task,
    TaskCategory,
    TaskType,
    TelegramIdentity,
    User,
    WishlistItem,
)
from family_app.ports.data_port import InvalidInputError, capture

if TYPE_CHECKING:
    from family_app.core.notifications import Notifier
    from family_app.data.store import EntityStore
    from family_app.ports.data_port import DataSource

logger = logging.getLogger(__name__)


class FeatureQuery:
    """Shared plumbing: one cache key, one fetcher, an optional local view."""

    key: QueryKey = ()

    def __init__(
        self,
        client: QueryClient,
        source: DataSource,
        store: EntityStore | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._client = client
        self._source = source
        self._store = store
        self._notifier = notifier

    def _fetch(self):
        raise NotImplementedError

    @property
    def view(self) -> Any:
        """Initial data from the local store, or None in remote mode."""
        return None

    async def load(self) -> Any:
        return await self._client.fetch(self.key, lambda: capture(self._fetch()), self.view)

    async def refresh(self) -> Any:
        return await self._client.refetch(self.key, lambda: capture(self._fetch()), self.view)

    @property
    def data(self) -> Any:
        state = self._client.get_state(self.key)
        if state is None:
            return self.view
        return state.data

    @property
    def error(self) -> str | None:
        state = self._client.get_state(self.key)
        return state.error if state else None

    def subscribe(self, listener) -> Any:
        return self._client.subscribe(self.key, listener)

    async def _notify(self, kind: NotificationType, recipients, actor_id=None, **context) -> None:
        if self._notifier is not None:
            await self._notifier.notify(kind, recipients, actor_id=actor_id, **context)


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------


class CurrentUserQuery(FeatureQuery):
    """The signed-in user. Sign-in is an idempotent upsert by Telegram id."""

    key = ("current_user",)

    def __init__(self, client, source, store=None, notifier=None, user_id: str | None = None):
        super().__init__(client, source, store, notifier)
        self.user_id = user_id or (store.current_user_id if store else None)
        self.sign_in: Mutation[User] = client.mutation(
            self._sign_in, affects=lambda user, *a, **kw: [self.key, ("users",)]
        )
        self.update: Mutation[User] = client.mutation(
            self._update,
            affects=lambda user, *a, **kw: [self.key, ("user", user.id), ("users",)],
        )

    async def _fetch(self) -> User | None:
        if self.user_id is None:
            return None
        return await self._source.get_user(self.user_id)

    @property
    def view(self) -> User | None:
        return self._store.current_user if self._store else None

    @property
    def user(self) -> User | None:
        return self.data

    async def _sign_in(self, identity: TelegramIdentity) -> User:
        user = await self._source.upsert_user(identity)
        self.user_id = user.id
        if self._store is not None:
            self._store.set_current_user(user.id)
        logger.info("Signed in as user %s", user.id)
        return user

    async def _update(self, changes: dict[str, Any]) -> User:
        if self.user_id is None:
            raise InvalidInputError("No signed-in user")
        return await self._source.update_user(self.user_id, changes)


# ---------------------------------------------------------------------------
# Families
# ---------------------------------------------------------------------------


class FamiliesQuery(FeatureQuery):
    """Groups the user belongs to, plus the currently selected one."""

    def __init__(self, client, source, user_id: str, store=None, notifier=None):
        super().__init__(client, source, store, notifier)
        self.user_id = user_id
        self.selected_family_id: str | None = None
        self.key = ("families", user_id)
        affects = lambda *a, **kw: [self.key]  # noqa: E731
        self.create: Mutation[FamilyGroup] = client.mutation(
            self._create, affects=affects, on_success=self._after_create
        )
        self.invite: Mutation[None] = client.mutation(
            self._invite, affects=affects, on_success=self._after_invite
        )
        self.leave: Mutation[None] = client.mutation(
            self._leave, affects=affects, on_success=self._after_leave
        )
        self.remove_member: Mutation[None] = client.mutation(self._remove_member, affects=affects)

    def _fetch(self):
        return self._source.list_families(self.user_id)

    @property
    def view(self) -> list[FamilyGroup] | None:
        if self._store is None:
            return None
        users = self._store.users
        return [
            selectors.with_member_users(f, users)
            for f in selectors.families_of(self._store.families, self.user_id)
        ]

    @property
    def families(self) -> list[FamilyGroup]:
        return self.data or []

    @property
    def selected_family(self) -> FamilyGroup | None:
        families = self.families
        chosen = next((f for f in families if f.id == self.selected_family_id), None)
        return chosen or (families[0] if families else None)

    @property
    def family_members(self) -> list[User]:
        users = self._store.users if self._store else None
        return selectors.family_members(self.selected_family, users)

    def select(self, family_id: str | None) -> None:
        self.selected_family_id = family_id

    async def _create(self, name: str) -> FamilyGroup:
        return await self._source.create_family(name, self.user_id)

    async def _after_create(self, family: FamilyGroup, *args) -> None:
        self.select(family.id)

    async def _invite(self, family_id: str, user_id: str) -> None:
        await self._source.invite_to_family(family_id, user_id)

    async def _after_invite(self, _, family_id: str, user_id: str) -> None:
        family = next((f for f in self.families if f.id == family_id), None)
        await self._notify(
            NotificationType.FAMILY_INVITE, [user_id], actor_id=self.user_id,
            family=family.name if family else family_id,
        )

    async def _leave(self, family_id: str) -> None:
        await self._source.leave_family(family_id, self.user_id)

    async def _after_leave(self, _, family_id: str) -> None:
        if self.selected_family_id == family_id:
            self.select(None)

    async def _remove_member(self, family_id: str, user_id: str) -> None:
        await self._source.remove_member(family_id, user_id)


# ---------------------------------------------------------------------------
# Tasks and categories
# ---------------------------------------------------------------------------


class TasksQuery(FeatureQuery):
    """A family's tasks, split into the main list and the archive."""

    def __init__(self, client, source, family_id: str, user_id: str, store=None, notifier=None):
        super().__init__(client, source, store, notifier)
        self.family_id = family_id
        self.user_id = user_id
        self.key = ("tasks", family_id)
        affects = lambda *a, **kw: [self.key]  # noqa: E731
        self.add: Mutation[Task] = client.mutation(
            self._source.create_task,
            affects=lambda task, *a, **kw: [("tasks", task.family_id)],
            on_success=self._after_add,
        )
        self.update: Mutation[Task] = client.mutation(self._source.update_task, affects=affects)
        self.complete: Mutation[Task] = client.mutation(self._complete, affects=affects)
        self.archive: Mutation[Task] = client.mutation(self._source.archive_task, affects=affects)
        self.delete: Mutation[None] = client.mutation(self._source.delete_task, affects=affects)

    def _fetch(self):
        return self._source.list_tasks(self.family_id, "all")

    @property
    def view(self) -> list[Task] | None:
        if self._store is None:
            return None
        return selectors.filter_tasks(self._store.tasks, self.family_id)

    @property
    def tasks(self) -> list[Task]:
        return self.data or []

    @property
    def active_tasks(self) -> list[Task]:
        return selectors.split_tasks(self.tasks)[0]

    @property
    def archived_tasks(self) -> list[Task]:
        return selectors.split_tasks(self.tasks)[1]

    async def _complete(self, task_id: str) -> Task:
        return await self._source.complete_task(task_id, self.user_id)

    async def _after_add(self, task: Task, *args) -> None:
        if task.assigned_to:
            await self._notify(
                NotificationType.TASK_ASSIGNED, task.assigned_to,
                actor_id=task.created_by, task=task.title,
            )


class CategoriesQuery(FeatureQuery):
    key = ("categories",)

    def _fetch(self):
        return self._source.list_categories()

    @property
    def view(self) -> list[TaskCategory] | None:
        return self._store.categories if self._store else None

    @property
    def categories(self) -> list[TaskCategory]:
        return self.data or []

    @property
    def by_type(self) -> dict[TaskType, list[TaskCategory]]:
        return selectors.categories_by_type(self.categories)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class EventsQuery(FeatureQuery):
    """Events the user created, was invited to, or responded to."""

    def __init__(self, client, source, user_id: str, store=None, notifier=None):
        super().__init__(client, source, store, notifier)
        self.user_id = user_id
        self.key = ("events", user_id)
        affects = lambda *a, **kw: [self.key]  # noqa: E731
        self.add: Mutation[Event] = client.mutation(
            self._source.create_event, affects=affects, on_success=self._after_add
        )
        self.update: Mutation[Event] = client.mutation(self._update, affects=affects)
        self.respond: Mutation[None] = client.mutation(
            self._respond, affects=affects, on_success=self._after_respond
        )
        self.delete: Mutation[None] = client.mutation(self._source.delete_event, affects=affects)

    def _fetch(self):
        return self._source.list_events(self.user_id)

    @property
    def view(self) -> list[Event] | None:
        if self._store is None:
            return None
        return selectors.events_for_user(self._store.events, self.user_id)

    @property
    def events(self) -> list[Event]:
        return self.data or []

    async def _update(self, event_id: str, changes: dict[str, Any]) -> Event:
        return await self._source.update_event(event_id, self.user_id, changes)

    async def _respond(self, event_id: str, response: EventResponse | str) -> None:
        await self._source.respond_to_event(event_id, self.user_id, response)

    async def _after_add(self, event: Event, *args) -> None:
        await self._notify(
            NotificationType.EVENT_INVITE, event.invited_users,
            actor_id=event.created_by, event=event.title,
        )

    async def _after_respond(self, _, event_id: str, response: EventResponse | str) -> None:
        event = next((e for e in self.events if e.id == event_id), None)
        if event is None:
            return
        await self._notify(
            NotificationType.EVENT_RESPONSE, [event.created_by], actor_id=self.user_id,
            event=event.title, response=EventResponse(response).value,
        )


# ---------------------------------------------------------------------------
# Wishlist
# ---------------------------------------------------------------------------


class WishlistQuery(FeatureQuery):
    """One user's wishlist as seen by a viewer.

    Booking identities are scrubbed for every viewer but the booker, the
    owner included.
    """

    def __init__(self, client, source, user_id: str, viewer_id: str, store=None, notifier=None):
        super().__init__(client, source, store, notifier)
        self.user_id = user_id
        self.viewer_id = viewer_id
        self.key = ("wishlist", user_id, viewer_id)
        owner_lists = lambda *a, **kw: [("wishlist", self.user_id)]  # noqa: E731
        every_list = lambda *a, **kw: [("wishlist",)]  # noqa: E731
        self.add: Mutation[WishlistItem] = client.mutation(
            self._source.create_wishlist_item, affects=owner_lists
        )
        self.update: Mutation[WishlistItem] = client.mutation(self._update, affects=owner_lists)
        self.delete: Mutation[None] = client.mutation(self._delete, affects=owner_lists)
        self.book: Mutation[None] = client.mutation(
            self._book, affects=every_list, on_success=self._after_book
        )
        self.cancel: Mutation[None] = client.mutation(
            self._cancel, affects=every_list, on_success=self._after_cancel
        )

    def _fetch(self):
        return self._source.list_wishlist(self.user_id, self.viewer_id)

    @property
    def view(self) -> list[WishlistItem] | None:
        if self._store is None:
            return None
        items = selectors.own_wishlist(self._store.wishlist_items, self.user_id)
        return selectors.anonymize_wishlist(items, self.viewer_id)

    @property
    def items(self) -> list[WishlistItem]:
        return self.data or []

    @property
    def my_wishlist(self) -> list[WishlistItem]:
        return selectors.own_wishlist(self.items, self.viewer_id)

    def _item(self, item_id: str) -> WishlistItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    async def _update(self, item_id: str, changes: dict[str, Any]) -> WishlistItem:
        return await self._source.update_wishlist_item(item_id, self.viewer_id, changes)

    async def _delete(self, item_id: str) -> None:
        await self._source.delete_wishlist_item(item_id, self.viewer_id)

    async def _book(self, item_id: str) -> None:
        await self._source.book_item(item_id, self.viewer_id)

    async def _cancel(self, item_id: str) -> None:
        await self._source.cancel_booking(item_id, self.viewer_id)

    async def _after_book(self, _, item_id: str) -> None:
        item = self._item(item_id)
        if item is not None:
            await self._notify(NotificationType.WISHLIST_BOOKED, [item.user_id], item=item.title)

    async def _after_cancel(self, _, item_id: str) -> None:
        item = self._item(item_id)
        if item is not None:
            await self._notify(NotificationType.WISHLIST_CANCELLED, [item.user_id], item=item.title)


# ---------------------------------------------------------------------------
# Friends
# ---------------------------------------------------------------------------


class FriendsQuery(FeatureQuery):
    """Friends, incoming requests, outgoing request targets and everyone searchable."""

    def __init__(self, client, source, user_id: str, store=None, notifier=None):
        super().__init__(client, source, store, notifier)
        self.user_id = user_id
        self.key = ("friends", user_id)
        self.requests_key = ("friend_requests", user_id)
        self.sent_key = ("sent_requests", user_id)
        self.users_key = ("users",)
        self.send_request: Mutation[FriendRequest] = client.mutation(
            self._send,
            affects=lambda *a, **kw: [self.key, self.requests_key, self.sent_key],
            on_success=self._after_send,
        )
        self.accept: Mutation[None] = client.mutation(
            self._accept,
            affects=lambda *a, **kw: [("friends",), self.requests_key],
            on_success=self._after_accept,
        )
        self.decline: Mutation[None] = client.mutation(
            self._decline, affects=lambda *a, **kw: [self.requests_key]
        )
        self.remove: Mutation[None] = client.mutation(
            self._remove, affects=lambda *a, **kw: [("friends",)]
        )

    def _fetch(self):
        return self._source.list_friends(self.user_id)

    async def load(self) -> list[User]:
        friends = await super().load()
        store = self._store
        await self._client.fetch(
            self.requests_key,
            lambda: capture(self._source.list_friend_requests(self.user_id)),
            selectors.pending_incoming(store.friend_requests, self.user_id, store.users) if store else None,
        )
        await self._client.fetch(
            self.sent_key,
            lambda: capture(self._source.list_sent_requests(self.user_id)),
            selectors.pending_outgoing(store.friend_requests, self.user_id) if store else None,
        )
        await self._client.fetch(
            self.users_key,
            lambda: capture(self._source.list_users()),
            store.users if store else None,
        )
        return friends

    def _cached(self, key: QueryKey, fallback: Any) -> Any:
        state = self._client.get_state(key)
        return state.data if state is not None else fallback

    @property
    def view(self) -> list[User] | None:
        if self._store is None:
            return None
        return selectors.friends_of(self._store.users, self._store.friendships, self.user_id)

    @property
    def friends(self) -> list[User]:
        return self.data or []

    @property
    def friend_ids(self) -> list[str]:
        return [u.id for u in self.friends]

    @property
    def requests(self) -> list[FriendRequest]:
        store = self._store
        fallback = (
            selectors.pending_incoming(store.friend_requests, self.user_id, store.users)
            if store else None
        )
        return self._cached(self.requests_key, fallback) or []

    @property
    def users(self) -> list[User]:
        return self._cached(self.users_key, self._store.users if self._store else None) or []

    @property
    def pending_request_user_ids(self) -> set[str]:
        store = self._store
        fallback = selectors.pending_outgoing(store.friend_requests, self.user_id) if store else None
        sent = self._cached(self.sent_key, fallback) or []
        return selectors.pending_outgoing_ids(sent, self.user_id)

    async def search(self, text: str) -> list[User]:
        """Search users by name or handle, at most 20 results."""
        found = await self._client.fetch(
            ("users", "search", text), lambda: capture(self._source.list_users(text))
        )
        return [u for u in found or [] if u.id != self.user_id]

    async def _send(self, receiver_id: str) -> FriendRequest:
        return await self._source.send_friend_request(self.user_id, receiver_id)

    async def _after_send(self, request: FriendRequest, *args) -> None:
        await self._notify(
            NotificationType.FRIEND_REQUEST, [request.receiver_id], actor_id=self.user_id
        )

    async def _accept(self, request_id: str) -> None:
        await self._source.accept_friend_request(request_id, self.user_id)

    async def _decline(self, request_id: str) -> None:
        await self._source.decline_friend_request(request_id, self.user_id)

    async def _after_accept(self, _, request_id: str) -> None:
        request = next((r for r in self.requests if r.id == request_id), None)
        if request is not None:
            await self._notify(
                NotificationType.FRIEND_ACCEPTED, [request.sender_id], actor_id=self.user_id
            )

    async def _remove(self, friend_id: str) -> None:
        await self._source.remove_friend(self.user_id, friend_id)


# ---------------------------------------------------------------------------
# Someone else's profile
# ---------------------------------------------------------------------------


class UserProfileQuery(FeatureQuery):
    """A user, their wishlist as the viewer sees it, and whether they are friends."""

    def __init__(self, client, source, user_id: str, viewer_id: str, store=None, notifier=None):
        super().__init__(client, source, store, notifier)
        self.user_id = user_id
        self.viewer_id = viewer_id
        self.key = ("user", user_id)
        self.wishlist_query = WishlistQuery(client, source, user_id, viewer_id, store, notifier)
        self.friends_key = ("friends", viewer_id)

    def _fetch(self):
        return self._source.get_user(self.user_id)

    async def load(self) -> User | None:
        user = await super().load()
        await self.wishlist_query.load()
        store = self._store
        await self._client.fetch(
            self.friends_key,
            lambda: capture(self._source.list_friends(self.viewer_id)),
            selectors.friends_of(store.users, store.friendships, self.viewer_id) if store else None,
        )
        return user

    @property
    def view(self) -> User | None:
        if self._store is None:
            return None
        return next((u for u in self._store.users if u.id == self.user_id), None)

    @property
    def user(self) -> User | None:
        return self.data

    @property
    def wishlist(self) -> list[WishlistItem]:
        return self.wishlist_query.items

    @property
    def is_friend(self) -> bool:
        state = self._client.get_state(self.friends_key)
        if state is not None:
            friends = state.data or []
            return any(u.id == self.user_id for u in friends)
        if self._store is None:
            return False
        return selectors.is_friend(self._store.friendships, self.viewer_id, self.user_id)
