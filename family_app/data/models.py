"""
Family App — Data Models.

Records for everything the app shares between family members and friends:
users, family groups, tasks, events, wishlists and the friendship graph.
Records validate their own invariants on construction, so a Task or a
WishlistItem in an impossible state can never be built, whether it comes
from the local store, the seed or an HTTP response.

Input drafts are pydantic models: they are the JSON bodies sent to the
REST boundary and the arguments accepted by the local store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing 'Z'. Naive means UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------


class TaskType(str, Enum):
    SHOPPING = "shopping"
    HOME = "home"
    OTHER = "other"


class TaskStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class FamilyRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class FriendRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class EventResponse(str, Enum):
    PENDING = "pending"
    GOING = "going"
    NOT_GOING = "not_going"


class NotificationType(str, Enum):
    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPTED = "friend_accepted"
    FAMILY_INVITE = "family_invite"
    TASK_ASSIGNED = "task_assigned"
    EVENT_INVITE = "event_invite"
    EVENT_RESPONSE = "event_response"
    WISHLIST_BOOKED = "wishlist_booked"
    WISHLIST_CANCELLED = "wishlist_cancelled"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class User:
    """A person, imported from their Telegram account on first sign-in."""

    id: str
    telegram_id: int
    first_name: str
    username: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    birthday: str | None = None        # ISO date YYYY-MM-DD
    show_birthday: bool = True
    chat_id: int | None = None         # Telegram chat for notifications
    created_at: str = ""
    updated_at: str | None = None

    def __post_init__(self) -> None:
        if not self.first_name:
            raise ValueError("User.first_name is required")
        if self.birthday:
            date.fromisoformat(self.birthday)

    @property
    def display_name(self) -> str:
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name


@dataclass
class FamilyMember:
    id: str
    family_id: str
    user_id: str
    role: FamilyRole = FamilyRole.MEMBER
    joined_at: str = ""
    user: User | None = None           # joined by the server, absent locally

    def __post_init__(self) -> None:
        self.role = FamilyRole(self.role)


@dataclass
class FamilyGroup:
    """A named group of people sharing one task list."""

    id: str
    name: str
    created_by: str
    created_at: str = ""
    members: list[FamilyMember] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("FamilyGroup.name is required")

    def member(self, user_id: str) -> FamilyMember | None:
        return next((m for m in self.members if m.user_id == user_id), None)

    def is_admin(self, user_id: str) -> bool:
        m = self.member(user_id)
        return m is not None and m.role is FamilyRole.ADMIN

    @property
    def admin_ids(self) -> list[str]:
        return [m.user_id for m in self.members if m.role is FamilyRole.ADMIN]


@dataclass
class Friendship:
    """One direction of a friendship. Friends always come in pairs."""

    id: str
    user_id: str
    friend_id: str
    created_at: str = ""

    def __post_init__(self) -> None:
        if self.user_id == self.friend_id:
            raise ValueError("A user cannot befriend themselves")


@dataclass
class FriendRequest:
    id: str
    sender_id: str
    receiver_id: str
    status: FriendRequestStatus = FriendRequestStatus.PENDING
    created_at: str = ""
    sender: User | None = None

    def __post_init__(self) -> None:
        self.status = FriendRequestStatus(self.status)
        if self.sender_id == self.receiver_id:
            raise ValueError("A user cannot send a friend request to themselves")

    def involves(self, a: str, b: str) -> bool:
        return {self.sender_id, self.receiver_id} == {a, b}


@dataclass
class TaskCategory:
    """Static reference data for grouping tasks."""

    id: str
    name: str
    icon: str
    type: TaskType
    order: int = 0

    def __post_init__(self) -> None:
        self.type = TaskType(self.type)


@dataclass
class Task:
    """A shopping item or chore inside one family group.

    Lifecycle: active -> completed -> archived, or active -> deleted.
    """

    id: str
    family_id: str
    created_by: str
    type: TaskType
    title: str
    category_id: str | None = None
    description: str | None = None
    quantity: int | float | None = None    # shopping only
    unit: str | None = None                # shopping only
    assigned_to: list[str] = field(default_factory=list)  # empty = shared
    status: TaskStatus = TaskStatus.ACTIVE
    completed_at: str | None = None
    completed_by: str | None = None
    created_at: str = ""
    updated_at: str | None = None

    def __post_init__(self) -> None:
        self.type = TaskType(self.type)
        self.status = TaskStatus(self.status)
        if not self.title.strip():
            raise ValueError("Task.title is required")
        if self.type is not TaskType.SHOPPING and (self.quantity is not None or self.unit):
            raise ValueError("quantity/unit are only allowed on shopping tasks")
        if self.quantity is not None and self.quantity <= 0:
            raise ValueError("Task.quantity must be positive")
        done = self.status in (TaskStatus.COMPLETED, TaskStatus.ARCHIVED)
        if done and not (self.completed_by and self.completed_at):
            raise ValueError(f"A {self.status.value} task needs completed_by and completed_at")
        if not done and (self.completed_by or self.completed_at):
            raise ValueError("An active task cannot carry completion fields")


@dataclass
class EventParticipant:
    id: str
    event_id: str
    user_id: str
    response: EventResponse = EventResponse.PENDING
    updated_at: str = ""
    user: User | None = None

    def __post_init__(self) -> None:
        self.response = EventResponse(self.response)


@dataclass
class Event:
    """A shared event with explicit invitations and per-guest RSVP."""

    id: str
    created_by: str
    title: str
    event_date: str                    # ISO-8601 timestamp
    description: str | None = None
    location: str | None = None
    image_url: str | None = None
    invited_users: list[str] = field(default_factory=list)
    participants: list[EventParticipant] = field(default_factory=list)
    created_at: str = ""
    updated_at: str | None = None

    def __post_init__(self) -> None:
        if not self.title.strip():
            raise ValueError("Event.title is required")
        parse_timestamp(self.event_date)

    @property
    def starts_at(self) -> datetime:
        return parse_timestamp(self.event_date)

    def participant(self, user_id: str) -> EventParticipant | None:
        return next((p for p in self.participants if p.user_id == user_id), None)


@dataclass
class WishlistItem:
    """A gift wish. Friends can book it; the owner never learns who did."""

    id: str
    user_id: str
    title: str
    description: str | None = None
    link: str | None = None
    price: float | None = None
    image_url: str | None = None
    is_booked: bool = False
    booked_by: str | None = None       # scrubbed for everyone but the booker
    booked_at: str | None = None
    created_at: str = ""
    updated_at: str | None = None

    def __post_init__(self) -> None:
        if not self.title.strip():
            raise ValueError("WishlistItem.title is required")
        if self.price is not None and self.price < 0:
            raise ValueError("WishlistItem.price cannot be negative")
        if not self.is_booked and (self.booked_by or self.booked_at):
            raise ValueError("An unbooked item cannot carry booking fields")
        if self.booked_by is not None and self.booked_by == self.user_id:
            raise ValueError("Owners cannot book their own wishes")


# ---------------------------------------------------------------------------
# Input drafts — JSON contract for writes
# ---------------------------------------------------------------------------


class TaskDraft(BaseModel):
    """A new task.

    JSON example:
    {
        "family_id": "f1",
        "created_by": "1",
        "type": "shopping",
        "title": "Молоко",
        "quantity": 2,
        "unit": "л",
        "assigned_to": []
    }
    """
    family_id: str
    created_by: str
    type: TaskType
    title: str
    category_id: str | None = None
    description: str | None = None
    quantity: int | float | None = None
    unit: str | None = None
    assigned_to: list[str] = Field(default_factory=list)

    @field_validator("quantity")
    @classmethod
    def quantity_positive(cls, v: int | float | None) -> int | float | None:
        if v is not None and v <= 0:
            raise ValueError("quantity must be positive")
        return v

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title is required")
        return v.strip()

    @model_validator(mode="after")
    def quantity_only_for_shopping(self) -> "TaskDraft":
        if self.type is not TaskType.SHOPPING and (self.quantity is not None or self.unit):
            raise ValueError("quantity/unit are only allowed on shopping tasks")
        return self


class EventDraft(BaseModel):
    """A new event. The creator is never their own guest."""
    created_by: str
    title: str
    event_date: str
    description: str | None = None
    location: str | None = None
    image_url: str | None = None
    invited_users: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title is required")
        return v.strip()

    @field_validator("event_date")
    @classmethod
    def valid_timestamp(cls, v: str) -> str:
        parse_timestamp(v)
        return v

    @model_validator(mode="after")
    def drop_creator_and_duplicates(self) -> "EventDraft":
        seen: list[str] = []
        for uid in self.invited_users:
            if uid != self.created_by and uid not in seen:
                seen.append(uid)
        self.invited_users = seen
        return self


class WishlistDraft(BaseModel):
    user_id: str
    title: str
    description: str | None = None
    link: str | None = None
    price: float | None = Field(default=None, ge=0)
    image_url: str | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title is required")
        return v.strip()


def _required_text(v: str | None) -> str:
    if v is None or not v.strip():
        raise ValueError("cannot be blank")
    return v.strip()


class TaskUpdate(BaseModel):
    """Editable fields of an active task. Only fields that were set are applied."""
    title: str | None = None
    description: str | None = None
    category_id: str | None = None
    quantity: int | float | None = None
    unit: str | None = None
    assigned_to: list[str] | None = None

    model_config = {"extra": "forbid"}

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str | None) -> str:
        return _required_text(v)

    @field_validator("quantity")
    @classmethod
    def quantity_positive(cls, v: int | float | None) -> int | float | None:
        if v is not None and v <= 0:
            raise ValueError("quantity must be positive")
        return v

    @field_validator("assigned_to")
    @classmethod
    def assignees_not_null(cls, v: list[str] | None) -> list[str]:
        if v is None:
            raise ValueError("use an empty list to unassign")
        return v


class EventUpdate(BaseModel):
    """Editable fields of an event; only its creator may apply them."""
    title: str | None = None
    description: str | None = None
    location: str | None = None
    image_url: str | None = None
    event_date: str | None = None

    model_config = {"extra": "forbid"}

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str | None) -> str:
        return _required_text(v)

    @field_validator("event_date")
    @classmethod
    def valid_timestamp(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("event_date cannot be cleared")
        parse_timestamp(v)
        return v


class WishlistUpdate(BaseModel):
    """Editable fields of an unbooked wishlist item."""
    title: str | None = None
    description: str | None = None
    link: str | None = None
    price: float | None = Field(default=None, ge=0)
    image_url: str | None = None

    model_config = {"extra": "forbid"}

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str | None) -> str:
        return _required_text(v)


class UserUpdate(BaseModel):
    """Editable profile fields. Only fields that were set are applied."""
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    avatar_url: str | None = None
    birthday: str | None = None
    show_birthday: bool | None = None

    model_config = {"extra": "forbid"}

    @field_validator("birthday")
    @classmethod
    def valid_date(cls, v: str | None) -> str | None:
        if v:
            date.fromisoformat(v)
        return v


class TelegramIdentity(BaseModel):
    """Identity payload supplied by the Telegram client on sign-in.

    JSON example:
    {
        "telegram_id": 123456789,
        "first_name": "Иван",
        "username": "ivan_ivanov",
        "avatar_url": "https://t.me/i/userpic/320/ivan.jpg"
    }
    """
    telegram_id: int
    first_name: str
    last_name: str | None = None
    username: str | None = None
    avatar_url: str | None = None
    chat_id: int | None = None
