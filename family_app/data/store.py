"""
Family App — Entity Store.

Single source of truth for local mode. The store holds every domain
collection and exposes one method per state transition; there are no raw
setters. Each mutation builds the next state from replaced records, swaps it
in, and writes the snapshot, so callers only ever observe consistent states
and a list returned by a read is never changed by a later mutation.

Illegal transitions raise the same typed errors the REST boundary maps to
(ConflictError, NotFoundError, InvalidInputError).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from family_app.data.codec import (
    decode_category,
    decode_event,
    decode_family,
    decode_friend_request,
    decode_friendship,
    decode_task,
    decode_user,
    decode_wishlist_item,
    encode,
)
from family_app.data.db import SnapshotDB
from family_app.data.models import (
    Event,
    EventDraft,
    EventParticipant,
    EventResponse,
    EventUpdate,
    FamilyGroup,
    FamilyMember,
    FamilyRole,
    FriendRequest,
    FriendRequestStatus,
    Friendship,
    Task,
    TaskCategory,
    TaskDraft,
    TaskStatus,
    TaskUpdate,
    TelegramIdentity,
    User,
    UserUpdate,
    WishlistDraft,
    WishlistItem,
    WishlistUpdate,
    utc_now_iso,
)
from family_app.ports.data_port import ConflictError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class StoreState:
    """Every collection the store owns. Replaced wholesale on each mutation."""

    current_user_id: str | None = None
    users: list[User] = field(default_factory=list)
    families: list[FamilyGroup] = field(default_factory=list)
    friendships: list[Friendship] = field(default_factory=list)
    friend_requests: list[FriendRequest] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    categories: list[TaskCategory] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    wishlist_items: list[WishlistItem] = field(default_factory=list)


def _new_id() -> str:
    return uuid.uuid4().hex


def _apply(record: Any, changes: dict[str, Any], update_model: type[BaseModel], now: str) -> Any:
    """Validate changes against the partial update model and apply the fields that were set."""
    try:
        update = update_model.model_validate(changes).model_dump(exclude_unset=True)
    except ValidationError as exc:
        raise InvalidInputError(str(exc)) from exc
    try:
        return replace(record, **update, updated_at=now)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(str(exc)) from exc


def _decode_state(payload: dict[str, Any]) -> StoreState:
    return StoreState(
        current_user_id=payload.get("current_user_id"),
        users=[decode_user(r) for r in payload["users"]],
        families=[decode_family(r) for r in payload["families"]],
        friendships=[decode_friendship(r) for r in payload["friendships"]],
        friend_requests=[decode_friend_request(r) for r in payload["friend_requests"]],
        tasks=[decode_task(r) for r in payload["tasks"]],
        categories=[decode_category(r) for r in payload["categories"]],
        events=[decode_event(r) for r in payload["events"]],
        wishlist_items=[decode_wishlist_item(r) for r in payload["wishlist_items"]],
    )


class EntityStore:
    """In-memory entity collections with snapshot persistence."""

    def __init__(
        self,
        db: SnapshotDB | None = None,
        seed_factory: Callable[[], StoreState] | None = None,
    ) -> None:
        if seed_factory is None:
            from family_app.data.seed import build_seed
            seed_factory = build_seed

        self._db = db
        self._seed_factory = seed_factory
        self._state = seed_factory()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Rehydrate from the snapshot, falling back to the seed."""
        if self._db is None:
            return
        payload = self._db.load()
        if payload is None:
            logger.info("No snapshot found, starting from seed data")
            self._state = self._seed_factory()
            self._persist()
            return
        try:
            self._state = _decode_state(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Snapshot is corrupt (%s), falling back to seed data", exc)
            self._state = self._seed_factory()
            self._persist()
            return
        logger.info("Store rehydrated from snapshot")

    def reset(self) -> None:
        """Restore the seed data and persist it."""
        self._state = self._seed_factory()
        self._persist()
        logger.info("Store reset to seed data")

    def snapshot(self) -> dict[str, Any]:
        return encode(self._state)

    def _persist(self) -> None:
        if self._db is not None:
            self._db.save(self.snapshot())

    def _commit(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        self._persist()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def current_user_id(self) -> str | None:
        return self._state.current_user_id

    @property
    def current_user(self) -> User | None:
        uid = self._state.current_user_id
        return next((u for u in self._state.users if u.id == uid), None)

    def set_current_user(self, user_id: str | None) -> None:
        if user_id is not None:
            self.get_user(user_id)
        self._commit(current_user_id=user_id)

    @property
    def users(self) -> list[User]:
        return list(self._state.users)

    @property
    def families(self) -> list[FamilyGroup]:
        return list(self._state.families)

    @property
    def friendships(self) -> list[Friendship]:
        return list(self._state.friendships)

    @property
    def friend_requests(self) -> list[FriendRequest]:
        return list(self._state.friend_requests)

    @property
    def tasks(self) -> list[Task]:
        return list(self._state.tasks)

    @property
    def categories(self) -> list[TaskCategory]:
        return list(self._state.categories)

    @property
    def events(self) -> list[Event]:
        return list(self._state.events)

    @property
    def wishlist_items(self) -> list[WishlistItem]:
        return list(self._state.wishlist_items)

    def get_user(self, user_id: str) -> User:
        for user in self._state.users:
            if user.id == user_id:
                return user
        raise NotFoundError(f"User {user_id} not found")

    def _family(self, family_id: str) -> FamilyGroup:
        for family in self._state.families:
            if family.id == family_id:
                return family
        raise NotFoundError(f"Family {family_id} not found")

    def _task(self, task_id: str) -> Task:
        for task in self._state.tasks:
            if task.id == task_id:
                return task
        raise NotFoundError(f"Task {task_id} not found")

    def _event(self, event_id: str) -> Event:
        for event in self._state.events:
            if event.id == event_id:
                return event
        raise NotFoundError(f"Event {event_id} not found")

    def _wish(self, item_id: str) -> WishlistItem:
        for item in self._state.wishlist_items:
            if item.id == item_id:
                return item
        raise NotFoundError(f"Wishlist item {item_id} not found")

    def _request(self, request_id: str) -> FriendRequest:
        for request in self._state.friend_requests:
            if request.id == request_id:
                return request
        raise NotFoundError(f"Friend request {request_id} not found")

    @staticmethod
    def _swap(items: list, new: Any) -> list:
        return [new if item.id == new.id else item for item in items]

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def upsert_user(self, identity: TelegramIdentity) -> User:
        """Create the user on first sign-in, refresh their profile afterwards."""
        now = utc_now_iso()
        existing = next(
            (u for u in self._state.users if u.telegram_id == identity.telegram_id), None
        )
        if existing is None:
            user = User(
                id=_new_id(),
                telegram_id=identity.telegram_id,
                first_name=identity.first_name,
                last_name=identity.last_name,
                username=identity.username,
                avatar_url=identity.avatar_url,
                chat_id=identity.chat_id,
                created_at=now,
                updated_at=now,
            )
            self._commit(users=[*self._state.users, user])
            logger.info("Created user %s for telegram id %s", user.id, identity.telegram_id)
            return user

        user = replace(
            existing,
            first_name=identity.first_name,
            last_name=identity.last_name,
            username=identity.username,
            avatar_url=identity.avatar_url or existing.avatar_url,
            chat_id=identity.chat_id or existing.chat_id,
            updated_at=now,
        )
        self._commit(users=self._swap(self._state.users, user))
        return user

    def update_user(self, user_id: str, changes: dict[str, Any]) -> User:
        existing = self.get_user(user_id)
        user = _apply(existing, changes, UserUpdate, utc_now_iso())
        self._commit(users=self._swap(self._state.users, user))
        logger.info("Updated profile of user %s", user_id)
        return user

    # ------------------------------------------------------------------
    # Families
    # ------------------------------------------------------------------

    def create_family(self, name: str, created_by: str) -> FamilyGroup:
        """Create a group whose creator is its first admin."""
        self.get_user(created_by)
        now = utc_now_iso()
        family_id = _new_id()
        try:
            family = FamilyGroup(
                id=family_id,
                name=name.strip(),
                created_by=created_by,
                created_at=now,
                members=[FamilyMember(
                    id=_new_id(), family_id=family_id, user_id=created_by,
                    role=FamilyRole.ADMIN, joined_at=now,
                )],
            )
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc
        self._commit(families=[*self._state.families, family])
        logger.info("Family %s '%s' created by %s", family.id, family.name, created_by)
        return family

    def invite_to_family(self, family_id: str, user_id: str) -> FamilyMember:
        family = self._family(family_id)
        self.get_user(user_id)
        if family.member(user_id) is not None:
            raise ConflictError(f"User {user_id} is already in family {family_id}")
        member = FamilyMember(
            id=_new_id(), family_id=family_id, user_id=user_id,
            role=FamilyRole.MEMBER, joined_at=utc_now_iso(),
        )
        updated = replace(family, members=[*family.members, member])
        self._commit(families=self._swap(self._state.families, updated))
        logger.info("User %s joined family %s", user_id, family_id)
        return member

    def leave_family(self, family_id: str, user_id: str) -> None:
        """Leave a group. A sole admin leaving deletes the group."""
        family = self._family(family_id)
        if family.member(user_id) is None:
            raise ConflictError(f"User {user_id} is not in family {family_id}")
        if family.is_admin(user_id) and len(family.members) == 1:
            self._delete_family(family)
            return
        self._drop_member(family, user_id)

    def remove_member(self, family_id: str, user_id: str) -> None:
        family = self._family(family_id)
        if family.member(user_id) is None:
            raise ConflictError(f"User {user_id} is not in family {family_id}")
        if len(family.members) == 1:
            self._delete_family(family)
            return
        self._drop_member(family, user_id)

    def _drop_member(self, family: FamilyGroup, user_id: str) -> None:
        updated = replace(family, members=[m for m in family.members if m.user_id != user_id])
        self._commit(families=self._swap(self._state.families, updated))
        logger.info("User %s left family %s", user_id, family.id)

    def _delete_family(self, family: FamilyGroup) -> None:
        self._commit(
            families=[f for f in self._state.families if f.id != family.id],
            tasks=[t for t in self._state.tasks if t.family_id != family.id],
        )
        logger.info("Family %s deleted with its last member", family.id)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def add_task(self, draft: TaskDraft) -> Task:
        family = self._family(draft.family_id)
        if family.member(draft.created_by) is None:
            raise ConflictError(f"User {draft.created_by} is not in family {family.id}")
        now = utc_now_iso()
        task = Task(id=_new_id(), created_at=now, updated_at=now, **draft.model_dump())
        self._commit(tasks=[*self._state.tasks, task])
        logger.info("Task %s '%s' added to family %s", task.id, task.title, family.id)
        return task

    def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        existing = self._task(task_id)
        if existing.status is not TaskStatus.ACTIVE:
            raise ConflictError(f"Task {task_id} is {existing.status.value}, only active tasks can be edited")
        task = _apply(existing, changes, TaskUpdate, utc_now_iso())
        self._commit(tasks=self._swap(self._state.tasks, task))
        return task

    def complete_task(self, task_id: str, actor_id: str) -> Task:
        existing = self._task(task_id)
        if existing.status is not TaskStatus.ACTIVE:
            raise ConflictError(f"Task {task_id} is already {existing.status.value}")
        now = utc_now_iso()
        task = replace(
            existing, status=TaskStatus.COMPLETED,
            completed_at=now, completed_by=actor_id, updated_at=now,
        )
        self._commit(tasks=self._swap(self._state.tasks, task))
        logger.info("Task %s completed by %s", task_id, actor_id)
        return task

    def archive_task(self, task_id: str) -> Task:
        existing = self._task(task_id)
        if existing.status is not TaskStatus.COMPLETED:
            raise ConflictError(f"Task {task_id} is {existing.status.value}, only completed tasks can be archived")
        task = replace(existing, status=TaskStatus.ARCHIVED, updated_at=utc_now_iso())
        self._commit(tasks=self._swap(self._state.tasks, task))
        logger.info("Task %s archived", task_id)
        return task

    def delete_task(self, task_id: str) -> None:
        existing = self._task(task_id)
        if existing.status is not TaskStatus.ACTIVE:
            raise ConflictError(f"Task {task_id} is {existing.status.value}, only active tasks can be deleted")
        self._commit(tasks=[t for t in self._state.tasks if t.id != task_id])
        logger.info("Task %s deleted", task_id)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def add_event(self, draft: EventDraft) -> Event:
        """Create an event with one pending participant per invited user."""
        self.get_user(draft.created_by)
        now = utc_now_iso()
        event_id = _new_id()
        participants = [
            EventParticipant(id=_new_id(), event_id=event_id, user_id=uid, updated_at=now)
            for uid in draft.invited_users
        ]
        event = Event(
            id=event_id, participants=participants,
            created_at=now, updated_at=now, **draft.model_dump(),
        )
        self._commit(events=[*self._state.events, event])
        logger.info("Event %s '%s' created by %s", event.id, event.title, draft.created_by)
        return event

    def update_event(self, event_id: str, actor_id: str, changes: dict[str, Any]) -> Event:
        existing = self._event(event_id)
        if existing.created_by != actor_id:
            raise ConflictError(f"Only the creator can edit event {event_id}")
        event = _apply(existing, changes, EventUpdate, utc_now_iso())
        self._commit(events=self._swap(self._state.events, event))
        return event

    def delete_event(self, event_id: str) -> None:
        self._event(event_id)
        self._commit(events=[e for e in self._state.events if e.id != event_id])
        logger.info("Event %s deleted", event_id)

    def respond_to_event(self, event_id: str, user_id: str, response: EventResponse | str) -> EventParticipant:
        try:
            response = EventResponse(response)
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc
        if response is EventResponse.PENDING:
            raise InvalidInputError("A response must be 'going' or 'not_going'")

        event = self._event(event_id)
        if event.created_by == user_id:
            raise ConflictError("The creator cannot respond to their own event")
        now = utc_now_iso()
        current = event.participant(user_id)
        if current is not None:
            participant = replace(current, response=response, updated_at=now)
            participants = self._swap(event.participants, participant)
        elif user_id in event.invited_users:
            participant = EventParticipant(
                id=_new_id(), event_id=event_id, user_id=user_id,
                response=response, updated_at=now,
            )
            participants = [*event.participants, participant]
        else:
            raise ConflictError(f"User {user_id} is not invited to event {event_id}")

        updated = replace(event, participants=participants, updated_at=now)
        self._commit(events=self._swap(self._state.events, updated))
        logger.info("User %s responded %s to event %s", user_id, response.value, event_id)
        return participant

    # ------------------------------------------------------------------
    # Wishlist
    # ------------------------------------------------------------------

    def add_wishlist_item(self, draft: WishlistDraft) -> WishlistItem:
        self.get_user(draft.user_id)
        now = utc_now_iso()
        item = WishlistItem(id=_new_id(), created_at=now, updated_at=now, **draft.model_dump())
        self._commit(wishlist_items=[*self._state.wishlist_items, item])
        logger.info("Wishlist item %s added by %s", item.id, draft.user_id)
        return item

    def update_wishlist_item(self, item_id: str, user_id: str, changes: dict[str, Any]) -> WishlistItem:
        existing = self._wish(item_id)
        if existing.user_id != user_id:
            raise ConflictError(f"Only the owner can edit wishlist item {item_id}")
        if existing.is_booked:
            raise ConflictError(f"Wishlist item {item_id} is booked and cannot be edited")
        item = _apply(existing, changes, WishlistUpdate, utc_now_iso())
        self._commit(wishlist_items=self._swap(self._state.wishlist_items, item))
        return item

    def delete_wishlist_item(self, item_id: str, user_id: str) -> None:
        existing = self._wish(item_id)
        if existing.user_id != user_id:
            raise ConflictError(f"Only the owner can delete wishlist item {item_id}")
        if existing.is_booked:
            raise ConflictError(f"Wishlist item {item_id} is booked and cannot be deleted")
        self._commit(wishlist_items=[w for w in self._state.wishlist_items if w.id != item_id])
        logger.info("Wishlist item %s deleted", item_id)

    def book_wishlist_item(self, item_id: str, user_id: str) -> WishlistItem:
        existing = self._wish(item_id)
        if existing.user_id == user_id:
            raise ConflictError("Owners cannot book their own wishes")
        if existing.is_booked:
            raise ConflictError(f"Wishlist item {item_id} is already booked")
        now = utc_now_iso()
        item = replace(existing, is_booked=True, booked_by=user_id, booked_at=now, updated_at=now)
        self._commit(wishlist_items=self._swap(self._state.wishlist_items, item))
        logger.info("Wishlist item %s booked", item_id)
        return item

    def cancel_booking(self, item_id: str, user_id: str) -> WishlistItem:
        existing = self._wish(item_id)
        if not existing.is_booked:
            raise ConflictError(f"Wishlist item {item_id} is not booked")
        if existing.booked_by != user_id:
            raise ConflictError("Only the booker can cancel a booking")
        item = replace(
            existing, is_booked=False, booked_by=None, booked_at=None, updated_at=utc_now_iso()
        )
        self._commit(wishlist_items=self._swap(self._state.wishlist_items, item))
        logger.info("Booking of wishlist item %s cancelled", item_id)
        return item

    # ------------------------------------------------------------------
    # Friends
    # ------------------------------------------------------------------

    def _are_friends(self, a: str, b: str) -> bool:
        return any(f.user_id == a and f.friend_id == b for f in self._state.friendships)

    def send_friend_request(self, sender_id: str, receiver_id: str) -> FriendRequest:
        if sender_id == receiver_id:
            raise InvalidInputError("A user cannot send a friend request to themselves")
        self.get_user(sender_id)
        self.get_user(receiver_id)
        if self._are_friends(sender_id, receiver_id):
            raise ConflictError(f"Users {sender_id} and {receiver_id} are already friends")
        if any(
            r.status is FriendRequestStatus.PENDING and r.involves(sender_id, receiver_id)
            for r in self._state.friend_requests
        ):
            raise ConflictError(f"A pending request between {sender_id} and {receiver_id} exists")
        request = FriendRequest(
            id=_new_id(), sender_id=sender_id, receiver_id=receiver_id, created_at=utc_now_iso()
        )
        self._commit(friend_requests=[*self._state.friend_requests, request])
        logger.info("Friend request %s sent from %s to %s", request.id, sender_id, receiver_id)
        return request

    def _resolve(self, request_id: str, user_id: str, status: FriendRequestStatus) -> FriendRequest:
        request = self._request(request_id)
        if request.receiver_id != user_id:
            raise ConflictError(f"Only the receiver can answer friend request {request_id}")
        if request.status is not FriendRequestStatus.PENDING:
            raise ConflictError(f"Friend request {request_id} is already {request.status.value}")
        return replace(request, status=status)

    def accept_friend_request(self, request_id: str, user_id: str) -> FriendRequest:
        """Accept a request and create both friendship directions in one commit."""
        request = self._resolve(request_id, user_id, FriendRequestStatus.ACCEPTED)
        now = utc_now_iso()
        a, b = request.sender_id, request.receiver_id
        friendships = [
            f for f in self._state.friendships
            if {f.user_id, f.friend_id} != {a, b}
        ]
        friendships += [
            Friendship(id=_new_id(), user_id=a, friend_id=b, created_at=now),
            Friendship(id=_new_id(), user_id=b, friend_id=a, created_at=now),
        ]
        self._commit(
            friend_requests=self._swap(self._state.friend_requests, request),
            friendships=friendships,
        )
        logger.info("Friend request %s accepted", request_id)
        return request

    def decline_friend_request(self, request_id: str, user_id: str) -> FriendRequest:
        request = self._resolve(request_id, user_id, FriendRequestStatus.DECLINED)
        self._commit(friend_requests=self._swap(self._state.friend_requests, request))
        logger.info("Friend request %s declined", request_id)
        return request

    def remove_friend(self, user_id: str, friend_id: str) -> None:
        """Delete both directions of a friendship."""
        if not (self._are_friends(user_id, friend_id) or self._are_friends(friend_id, user_id)):
            raise NotFoundError(f"Users {user_id} and {friend_id} are not friends")
        self._commit(friendships=[
            f for f in self._state.friendships
            if {f.user_id, f.friend_id} != {user_id, friend_id}
        ])
        logger.info("Friendship between %s and %s removed", user_id, friend_id)
