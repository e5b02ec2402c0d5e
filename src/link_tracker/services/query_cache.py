import asyncio
import logging
import time
from collections.abc import Mapping, Set
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from .observable import Observable
from ..core.config import settings
from ..schemas.result import Err, Ok, Result

logger = logging.getLogger(__name__)

QueryKey = tuple
FetchFn = Callable[[], Awaitable[Result]]


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return tuple(sorted(((k, _freeze(v)) for k, v in value.items()), key=lambda item: item[0]))
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, Set):
        return tuple(sorted(_freeze(v) for v in value))
    return value


def make_key(*parts: Any) -> QueryKey:
    """
    Build a query key compared by value.

    Mappings become tuples of sorted items, so {"a": 1, "b": 2} and
    {"b": 2, "a": 1} produce the same key.
    """
    return tuple(_freeze(part) for part in parts)


def key_matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[:len(prefix)] == prefix


class QueryStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class QueryState:
    """Snapshot of one cache entry as seen by a caller"""

    key: QueryKey
    status: QueryStatus = QueryStatus.IDLE
    data: Any = None
    error: Err | None = None
    is_fetching: bool = False
    is_invalidated: bool = False
    updated_at: float | None = None

    @property
    def is_idle(self) -> bool:
        return self.status is QueryStatus.IDLE

    @property
    def is_loading(self) -> bool:
        return self.status is QueryStatus.LOADING

    @property
    def is_success(self) -> bool:
        return self.status is QueryStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status is QueryStatus.ERROR


class _Entry:

    def __init__(self, key: QueryKey):
        self.key = key
        self.status = QueryStatus.IDLE
        self.data: Any = None
        self.error: Err | None = None
        self.updated_at: float | None = None
        self.invalidated = False
        self.invalidated_in_flight = False
        self.task: asyncio.Task | None = None

    def snapshot(self) -> QueryState:
        return QueryState(
            key=self.key,
            status=self.status,
            data=self.data,
            error=self.error,
            is_fetching=self.task is not None,
            is_invalidated=self.invalidated,
            updated_at=self.updated_at,
        )


class QueryCache(Observable):
    """
    Keyed, de-duplicated cache of server responses.

    One instance is shared by the controllers of a dashboard. Entries are only
    written by the fetch that produced them or by invalidation. Listeners
    registered with ``subscribe`` are called as ``listener(key, state)`` after
    every change of an entry.

    ``resolve`` schedules fetches on the running event loop and therefore has
    to be called from inside it.
    """

    def __init__(self, stale_time: float | None = None, clock: Callable[[], float] = time.monotonic):
        super().__init__()
        self.stale_time = settings.STALE_TIME if stale_time is None else stale_time
        self.clock = clock
        self._entries: dict[QueryKey, _Entry] = {}

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[QueryKey]:
        return list(self._entries)

    def get_state(self, key: QueryKey) -> QueryState:
        """Current state of ``key``; never fetches."""
        entry = self._entries.get(key)
        if entry is None:
            return QueryState(key=key)
        return entry.snapshot()

    def is_stale(self, key: QueryKey, stale_time: float | None = None) -> bool:
        entry = self._entries.get(key)
        if entry is None or entry.status is not QueryStatus.SUCCESS:
            return True
        return self._is_stale(entry, stale_time)

    def _is_stale(self, entry: _Entry, stale_time: float | None) -> bool:
        if entry.invalidated or entry.updated_at is None:
            return True
        if stale_time is None:
            stale_time = self.stale_time
        return self.clock() - entry.updated_at >= stale_time

    def resolve(
        self,
        key: QueryKey,
        fetch_fn: FetchFn,
        enabled: bool = True,
        stale_time: float | None = None,
    ) -> QueryState:
        """
        Return the freshest known state of ``key`` and fetch when needed.

        Args:
            key: Query key, compared by value
            fetch_fn: Coroutine function returning ``Ok`` or ``Err``
            enabled: When False nothing is fetched and a neutral state is returned
            stale_time: Seconds a successful result stays fresh (cache default if None)

        Returns:
            QueryState: Snapshot taken after any fetch was scheduled
        """
        entry = self._entries.get(key)

        if not enabled:
            if entry is None or entry.status in (QueryStatus.IDLE, QueryStatus.LOADING):
                return QueryState(key=key)
            return entry.snapshot()

        if entry is None:
            entry = self._entries[key] = _Entry(key)

        if entry.task is not None:
            return entry.snapshot()

        if entry.status is not QueryStatus.SUCCESS or self._is_stale(entry, stale_time):
            self._start(entry, fetch_fn)

        return entry.snapshot()

    async def fetch(
        self,
        key: QueryKey,
        fetch_fn: FetchFn,
        enabled: bool = True,
        stale_time: float | None = None,
    ) -> QueryState:
        """Like ``resolve`` but waits for the fetch, if any, to settle."""
        state = self.resolve(key, fetch_fn, enabled=enabled, stale_time=stale_time)

        entry = self._entries.get(key)
        if enabled and entry is not None and entry.task is not None:
            # The task is shared with other callers of the same key
            await asyncio.shield(entry.task)
            return self.get_state(key)

        return state

    def _start(self, entry: _Entry, fetch_fn: FetchFn) -> None:
        loop = asyncio.get_running_loop()

        if entry.updated_at is None:
            entry.status = QueryStatus.LOADING
        entry.invalidated_in_flight = False
        entry.task = loop.create_task(self._run(entry, fetch_fn))

        logger.debug("Fetching %s", entry.key)
        self._publish(entry.key, entry.snapshot())

    async def _run(self, entry: _Entry, fetch_fn: FetchFn) -> None:
        try:
            result = await fetch_fn()
            if not isinstance(result, (Ok, Err)):
                raise TypeError(f"fetch function returned {type(result).__name__}, expected Ok or Err")
        except Exception as e:
            logger.exception("Query %s raised", entry.key)
            result = Err(reason=str(e) or type(e).__name__)
        finally:
            entry.task = None

        if self._entries.get(entry.key) is not entry:
            # removed while in flight
            return

        if isinstance(result, Ok):
            entry.status = QueryStatus.SUCCESS
            entry.data = result.value
            entry.error = None
            entry.updated_at = self.clock()
            logger.debug("Fetched %s", entry.key)
        else:
            entry.status = QueryStatus.ERROR
            entry.error = result
            logger.warning("Query %s failed: %s", entry.key, result.reason)

        entry.invalidated = entry.invalidated_in_flight
        entry.invalidated_in_flight = False
        self._publish(entry.key, entry.snapshot())

    def invalidate(self, prefix: QueryKey = ()) -> list[QueryKey]:
        """
        Mark every entry under ``prefix`` as stale.

        The next ``resolve`` of a matching key refetches. An entry whose
        fetch is in flight stays stale after that fetch settles.

        Returns:
            list[QueryKey]: Keys that were invalidated
        """
        matched = [entry for key, entry in self._entries.items() if key_matches(key, prefix)]

        for entry in matched:
            entry.invalidated = True
            if entry.task is not None:
                entry.invalidated_in_flight = True

        logger.info("Invalidated %d queries under %s", len(matched), prefix)

        for entry in matched:
            self._publish(entry.key, entry.snapshot())

        return [entry.key for entry in matched]

    def remove(self, prefix: QueryKey = ()) -> int:
        """Drop every entry under ``prefix``; in-flight fetches are cancelled."""
        keys = [key for key in self._entries if key_matches(key, prefix)]

        for key in keys:
            entry = self._entries.pop(key)
            if entry.task is not None:
                entry.task.cancel()

        return len(keys)

    def clear(self) -> None:
        self.remove(())
