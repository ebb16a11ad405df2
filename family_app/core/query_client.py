"""
Family App — Query Client.

Keyed cache between feature queries and the data source. Reads resolve
through fetch(); writes go through Mutation objects that invalidate the keys
they affect once the write has been acknowledged. Invalidation marks matching
entries stale and notifies only the subscribers of those keys, so nothing is
refetched behind a caller's back: the next fetch() of a stale key goes to the
source.

Keys are tuples; invalidating a prefix such as ("wishlist",) hits every key
starting with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar

from family_app.ports.data_port import DataError, Result

logger = logging.getLogger(__name__)

T = TypeVar("T")
QueryKey = tuple
Fetcher = Callable[[], Awaitable[Result]]
Listener = Callable[[QueryKey], None]


@dataclass
class QueryState:
    """Cached outcome of the last fetch for one key."""

    data: Any = None
    error: str | None = None
    kind: str | None = None
    stale: bool = True
    fetch_count: int = 0


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryClient:
    """Cache of fetched results with prefix invalidation and subscriptions."""

    def __init__(self) -> None:
        self._entries: dict[QueryKey, QueryState] = {}
        self._listeners: dict[QueryKey, list[Listener]] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch(self, key: QueryKey, fetcher: Fetcher, initial_data: Any = None) -> Any:
        """Return fresh cached data for key, or fetch it."""
        entry = self._entries.get(key)
        if entry is not None and not entry.stale:
            logger.debug("Cache hit for %s", key)
            return entry.data
        return await self.refetch(key, fetcher, initial_data)

    async def refetch(self, key: QueryKey, fetcher: Fetcher, initial_data: Any = None) -> Any:
        """Fetch key unconditionally.

        A failed fetch keeps whatever data was there before (or initial_data)
        and records the error on the entry; the entry stays stale so the next
        fetch tries again.
        """
        previous = self._entries.get(key)
        result = await fetcher()
        count = (previous.fetch_count if previous else 0) + 1
        if result.ok:
            state = QueryState(data=result.data, stale=False, fetch_count=count)
        else:
            fallback = previous.data if previous and previous.data is not None else initial_data
            state = QueryState(
                data=fallback, error=result.error, kind=result.kind, fetch_count=count
            )
        self._entries[key] = state
        return state.data

    def get_data(self, key: QueryKey) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry is not None else None

    def get_state(self, key: QueryKey) -> QueryState | None:
        return self._entries.get(key)

    def set_data(self, key: QueryKey, data: Any) -> None:
        self._entries[key] = QueryState(data=data, stale=False)
        self._notify([key])

    # ------------------------------------------------------------------
    # Invalidation and subscriptions
    # ------------------------------------------------------------------

    def invalidate(self, *prefixes: QueryKey) -> list[QueryKey]:
        """Mark every entry under the given prefixes stale and notify its subscribers."""
        hit: list[QueryKey] = []
        for key, entry in self._entries.items():
            if any(_matches(key, p) for p in prefixes):
                entry.stale = True
                hit.append(key)
        for key in self._listeners:
            if key not in hit and any(_matches(key, p) for p in prefixes):
                hit.append(key)
        if hit:
            logger.debug("Invalidated %s", hit)
        self._notify(hit)
        return hit

    def subscribe(self, key: QueryKey, listener: Listener) -> Callable[[], None]:
        """Call listener(key) whenever key is invalidated. Returns an unsubscribe callable."""
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(key, None)

        return unsubscribe

    def _notify(self, keys: Iterable[QueryKey]) -> None:
        for key in keys:
            for listener in list(self._listeners.get(key, [])):
                listener(key)

    def clear(self) -> None:
        """Drop every cached entry. Subscriptions are kept and notified."""
        keys = list(self._entries) + [k for k in self._listeners if k not in self._entries]
        self._entries.clear()
        self._notify(keys)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def mutation(
        self,
        fn: Callable[..., Awaitable[T]],
        affects: Callable[..., Iterable[QueryKey]] | None = None,
        on_success: Callable[..., Awaitable[None]] | None = None,
    ) -> Mutation[T]:
        return Mutation(self, fn, affects, on_success)


class MutationStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class Mutation(Generic[T]):
    """A write bound to the keys it invalidates.

    Calling it awaits the write; on success the affected keys are invalidated
    and on_success runs, in that order. A DataError is recorded on the
    mutation (its error channel) and the call returns None.
    """

    def __init__(
        self,
        client: QueryClient,
        fn: Callable[..., Awaitable[T]],
        affects: Callable[..., Iterable[QueryKey]] | None = None,
        on_success: Callable[..., Awaitable[None]] | None = None,
    ) -> None:
        self._client = client
        self._fn = fn
        self._affects = affects
        self._on_success = on_success
        self.status = MutationStatus.IDLE
        self.data: T | None = None
        self.error: str | None = None
        self.kind: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status is MutationStatus.PENDING

    def reset(self) -> None:
        self.status = MutationStatus.IDLE
        self.data = None
        self.error = None
        self.kind = None

    async def __call__(self, *args: Any, **kwargs: Any) -> T | None:
        self.status = MutationStatus.PENDING
        self.error = None
        self.kind = None
        try:
            result = await self._fn(*args, **kwargs)
        except DataError as exc:
            self.status = MutationStatus.ERROR
            self.error = str(exc) or exc.kind
            self.kind = exc.kind
            logger.warning("Mutation failed (%s): %s", exc.kind, exc)
            return None

        self.status = MutationStatus.SUCCESS
        self.data = result
        if self._affects is not None:
            self._client.invalidate(*self._affects(result, *args, **kwargs))
        if self._on_success is not None:
            await self._on_success(result, *args, **kwargs)
        return result
