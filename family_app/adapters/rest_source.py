"""REST data adapter — implements DataSource over the HTTP boundary.

Every endpoint answers {"data": ...} on success or {"error": "..."} with a
non-2xx status. Responses are normalized here: HTTP statuses map onto the
DataError taxonomy, network failures and undecodable payloads become
TransportError, and nothing from httpx escapes.

Reads are retried with exponential backoff on transport failures and 5xx.
Mutations are sent once; the boundary has no idempotency keys.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from family_app.core.selectors import anonymize_wishlist
from family_app.data.codec import (
    decode_category,
    decode_event,
    decode_family,
    decode_friend_request,
    decode_task,
    decode_user,
    decode_wishlist_item,
)
from family_app.data.models import (
    Event,
    EventDraft,
    EventResponse,
    EventUpdate,
    FamilyGroup,
    FriendRequest,
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
)
from family_app.ports.data_port import (
    ConflictError,
    DataError,
    InvalidInputError,
    NotFoundError,
    TransportError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STATUS_ERRORS: dict[int, type[DataError]] = {
    400: InvalidInputError,
    404: NotFoundError,
    409: ConflictError,
    422: InvalidInputError,
}


def _decode(decoder: Callable[[dict], T], row: Any) -> T:
    try:
        return decoder(row)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise TransportError(f"Malformed response payload: {exc}") from exc


def _decode_list(decoder: Callable[[dict], T], rows: Any) -> list[T]:
    if not isinstance(rows, list):
        raise TransportError("Malformed response payload: expected a list")
    return [_decode(decoder, row) for row in rows]


def _validated(update_model: type[BaseModel], changes: dict[str, Any]) -> dict[str, Any]:
    try:
        return update_model.model_validate(changes).model_dump(mode="json", exclude_unset=True)
    except ValidationError as exc:
        raise InvalidInputError(str(exc)) from exc


class _RetryableError(TransportError):
    """Transport failure worth retrying on an idempotent read."""


class RestDataSource:
    """Remote-mode implementation of DataSource."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = 2,
        retry_backoff: float = 0.5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.request(method, url, params=params, json=json)
        except httpx.HTTPError as exc:
            raise _RetryableError(f"{method} {path} failed: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.is_success:
            if not isinstance(body, dict):
                raise TransportError(f"{method} {path}: response is not a JSON object")
            if body.get("error"):
                raise TransportError(str(body["error"]))
            return body.get("data")

        message = body.get("error") if isinstance(body, dict) else None
        message = str(message or f"{method} {path} returned HTTP {resp.status_code}")
        if resp.status_code >= 500:
            raise _RetryableError(message)
        raise _STATUS_ERRORS.get(resp.status_code, TransportError)(message)

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        attempt = 0
        while True:
            try:
                return await self._send("GET", path, params=params)
            except _RetryableError as exc:
                if attempt >= self._max_retries:
                    raise TransportError(str(exc)) from exc
                delay = self._retry_backoff * (2 ** attempt)
                attempt += 1
                logger.warning(
                    "GET %s failed (%s), retry %d/%d in %.2fs",
                    path, exc, attempt, self._max_retries, delay,
                )
                await asyncio.sleep(delay)

    async def _write(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            return await self._send(method, path, **kwargs)
        except _RetryableError as exc:
            raise TransportError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> User:
        row = await self._get("/users", {"id": user_id})
        if row is None:
            raise NotFoundError(f"User {user_id} not found")
        return _decode(decode_user, row)

    async def list_users(self, search: str | None = None) -> list[User]:
        params = {"search": search} if search is not None else None
        return _decode_list(decode_user, await self._get("/users", params))

    async def upsert_user(self, identity: TelegramIdentity) -> User:
        row = await self._write("POST", "/users", json=identity.model_dump())
        return _decode(decode_user, row)

    async def update_user(self, user_id: str, changes: dict[str, Any]) -> User:
        update = _validated(UserUpdate, changes)
        row = await self._write("PATCH", "/users", json={"id": user_id, **update})
        return _decode(decode_user, row)

    # ------------------------------------------------------------------
    # Families
    # ------------------------------------------------------------------

    async def list_families(self, user_id: str) -> list[FamilyGroup]:
        rows = await self._get("/families", {"user_id": user_id})
        return _decode_list(decode_family, rows)

    async def create_family(self, name: str, created_by: str) -> FamilyGroup:
        if not name.strip():
            raise InvalidInputError("Family name is required")
        row = await self._write(
            "POST", "/families", json={"name": name.strip(), "created_by": created_by}
        )
        return _decode(decode_family, row)

    async def _membership(self, action: str, family_id: str, user_id: str) -> None:
        await self._write(
            "PATCH", "/families",
            json={"action": action, "family_id": family_id, "user_id": user_id},
        )

    async def invite_to_family(self, family_id: str, user_id: str) -> None:
        await self._membership("invite", family_id, user_id)

    async def leave_family(self, family_id: str, user_id: str) -> None:
        await self._membership("leave", family_id, user_id)

    async def remove_member(self, family_id: str, user_id: str) -> None:
        await self._membership("remove", family_id, user_id)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def list_tasks(self, family_id: str, status: str = "all") -> list[Task]:
        rows = await self._get("/tasks", {"family_id": family_id, "status": status})
        return _decode_list(decode_task, rows)

    async def list_categories(self) -> list[TaskCategory]:
        rows = await self._get("/tasks", {"categories": "true"})
        return _decode_list(decode_category, rows)

    async def create_task(self, draft: TaskDraft) -> Task:
        row = await self._write("POST", "/tasks", json=draft.model_dump(mode="json"))
        return _decode(decode_task, row)

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        row = await self._write(
            "PATCH", "/tasks", json={"id": task_id, **_validated(TaskUpdate, changes)}
        )
        return _decode(decode_task, row)

    async def complete_task(self, task_id: str, actor_id: str) -> Task:
        row = await self._write(
            "PATCH", "/tasks",
            json={
                "id": task_id,
                "status": TaskStatus.COMPLETED.value,
                "completed_by": actor_id,
            },
        )
        return _decode(decode_task, row)

    async def archive_task(self, task_id: str) -> Task:
        row = await self._write(
            "PATCH", "/tasks", json={"id": task_id, "status": TaskStatus.ARCHIVED.value}
        )
        return _decode(decode_task, row)

    async def delete_task(self, task_id: str) -> None:
        await self._write("DELETE", "/tasks", params={"id": task_id})

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def list_events(self, user_id: str) -> list[Event]:
        return _decode_list(decode_event, await self._get("/events", {"user_id": user_id}))

    async def create_event(self, draft: EventDraft) -> Event:
        row = await self._write("POST", "/events", json=draft.model_dump(mode="json"))
        return _decode(decode_event, row)

    async def update_event(self, event_id: str, actor_id: str, changes: dict[str, Any]) -> Event:
        row = await self._write(
            "PATCH", "/events",
            json={
                "type": "update", "id": event_id, "user_id": actor_id,
                **_validated(EventUpdate, changes),
            },
        )
        return _decode(decode_event, row)

    async def respond_to_event(self, event_id: str, user_id: str, response: EventResponse) -> None:
        try:
            response = EventResponse(response)
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc
        await self._write(
            "PATCH", "/events",
            json={
                "type": "response",
                "event_id": event_id,
                "user_id": user_id,
                "response": response.value,
            },
        )

    async def delete_event(self, event_id: str) -> None:
        await self._write("DELETE", "/events", params={"id": event_id})

    # ------------------------------------------------------------------
    # Wishlist
    # ------------------------------------------------------------------

    async def list_wishlist(self, user_id: str, viewer_id: str) -> list[WishlistItem]:
        rows = await self._get(
            "/wishlist", {"user_id": user_id, "current_user_id": viewer_id}
        )
        # Anonymized on both sides of the boundary.
        return anonymize_wishlist(_decode_list(decode_wishlist_item, rows), viewer_id)

    async def create_wishlist_item(self, draft: WishlistDraft) -> WishlistItem:
        row = await self._write("POST", "/wishlist", json=draft.model_dump(mode="json"))
        return _decode(decode_wishlist_item, row)

    async def update_wishlist_item(
        self, item_id: str, user_id: str, changes: dict[str, Any]
    ) -> WishlistItem:
        row = await self._write(
            "PATCH", "/wishlist",
            json={
                "action": "update", "item_id": item_id, "user_id": user_id,
                **_validated(WishlistUpdate, changes),
            },
        )
        return anonymize_wishlist([_decode(decode_wishlist_item, row)], user_id)[0]

    async def book_item(self, item_id: str, user_id: str) -> None:
        await self._write(
            "PATCH", "/wishlist",
            json={"action": "book", "item_id": item_id, "booked_by": user_id},
        )

    async def cancel_booking(self, item_id: str, user_id: str) -> None:
        await self._write(
            "PATCH", "/wishlist",
            json={"action": "cancel", "item_id": item_id, "user_id": user_id},
        )

    async def delete_wishlist_item(self, item_id: str, user_id: str) -> None:
        await self._write("DELETE", "/wishlist", params={"id": item_id, "user_id": user_id})

    # ------------------------------------------------------------------
    # Friends
    # ------------------------------------------------------------------

    async def list_friends(self, user_id: str) -> list[User]:
        return _decode_list(decode_user, await self._get("/friends", {"user_id": user_id}))

    async def list_friend_requests(self, user_id: str) -> list[FriendRequest]:
        rows = await self._get("/friends", {"user_id": user_id, "type": "requests"})
        return _decode_list(decode_friend_request, rows)

    async def list_sent_requests(self, user_id: str) -> list[FriendRequest]:
        rows = await self._get("/friends", {"user_id": user_id, "type": "sent"})
        return _decode_list(decode_friend_request, rows)

    async def send_friend_request(self, sender_id: str, receiver_id: str) -> FriendRequest:
        if sender_id == receiver_id:
            raise InvalidInputError("A user cannot send a friend request to themselves")
        row = await self._write(
            "POST", "/friends", json={"sender_id": sender_id, "receiver_id": receiver_id}
        )
        return _decode(decode_friend_request, row)

    async def accept_friend_request(self, request_id: str, user_id: str) -> None:
        # The server writes the two friendship rows separately.
        await self._write(
            "PATCH", "/friends", json={"action": "accept", "request_id": request_id, "user_id": user_id}
        )

    async def decline_friend_request(self, request_id: str, user_id: str) -> None:
        await self._write(
            "PATCH", "/friends", json={"action": "decline", "request_id": request_id, "user_id": user_id}
        )

    async def remove_friend(self, user_id: str, friend_id: str) -> None:
        await self._write(
            "DELETE", "/friends", params={"user_id": user_id, "friend_id": friend_id}
        )
