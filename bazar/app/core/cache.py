"""Read-through cache with in-flight request coalescing.

A single ``ReadThroughCache`` is created per process (see
``bazar.app.runtime``) and injected into the readers that use it. Values are
kept in memory with a per-call TTL; concurrent misses for the same key share
one fetch.
"""

import asyncio
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from bazar.app.core.config import settings
from bazar.app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Fetcher = Callable[[], Awaitable[T]]
InvalidationListener = Callable[[str], None]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass
class _CacheEntry(Generic[T]):
    """Internal cache entry with the time it was stored."""

    data: T
    stored_at: float

    def is_fresh(self, now: float, ttl_ms: float) -> bool:
        """Check if the entry is younger than ``ttl_ms``."""
        return now - self.stored_at < ttl_ms


class ReadThroughCache:
    """In-memory key/value cache in front of asynchronous fetchers.

    Guarantees:
    - A live entry (younger than the caller's TTL) is returned without
      calling the fetcher.
    - At most one fetcher invocation is outstanding per key; callers that
      miss while a fetch is pending await that same fetch.
    - Failures are never cached; every waiter sees the failure and the next
      call fetches again.

    The cache applies no timeout of its own. A fetcher that never settles
    keeps its key in flight until it is invalidated.

    Example:
        >>> cache = ReadThroughCache()
        >>> settings = await cache.get("settings:credit_check", load_settings, ttl_ms=30_000)
    """

    def __init__(
        self,
        default_ttl_ms: float | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            default_ttl_ms: TTL used when ``get`` is called without one.
                Defaults to settings.cache_default_ttl_ms.
            clock: Zero-argument callable returning the current time in
                milliseconds. Defaults to a monotonic clock.
        """
        self._default_ttl_ms = (
            default_ttl_ms if default_ttl_ms is not None else settings.cache_default_ttl_ms
        )
        self._clock = clock or _monotonic_ms
        self._entries: dict[str, _CacheEntry[Any]] = {}
        self._in_flight: dict[str, asyncio.Task] = {}
        self._listeners: list[InvalidationListener] = []

    async def get(self, key: str, fetcher: Fetcher[T], ttl_ms: float | None = None) -> T:
        """Return the cached value for ``key`` or load it with ``fetcher``.

        Args:
            key: Cache key.
            fetcher: Zero-argument coroutine function producing the value.
            ttl_ms: Maximum age of a cached value in milliseconds.

        Returns:
            The cached or freshly fetched value.

        Raises:
            Whatever ``fetcher`` raises; the failure is not cached.
        """
        ttl = self._default_ttl_ms if ttl_ms is None else ttl_ms

        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self._clock(), ttl):
            return entry.data

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(fetcher())
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._settle(key, done))

        # Shield so one cancelled waiter does not cancel the shared fetch
        return await asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Task) -> None:
        # A fetch whose marker was invalidated meanwhile must not repopulate
        if self._in_flight.get(key) is not task:
            if not task.cancelled():
                task.exception()
            return
        del self._in_flight[key]

        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(
                f"Cache fetch failed for {key}: {error!r}",
                extra={"cache_key": key},
            )
            return
        self._entries[key] = _CacheEntry(data=task.result(), stored_at=self._clock())

    def set(self, key: str, data: Any) -> None:
        """Seed or overwrite an entry without calling a fetcher."""
        self._entries[key] = _CacheEntry(data=data, stored_at=self._clock())

    def invalidate(self, key: str) -> None:
        """Remove ``key`` and its in-flight marker, then notify listeners."""
        self._entries.pop(key, None)
        self._in_flight.pop(key, None)
        self._notify(key)

    def invalidate_pattern(self, pattern: str) -> list[str]:
        """Remove every key matching the regular expression ``pattern``.

        Listeners are notified once per removed key.

        Returns:
            The removed keys.
        """
        regex = re.compile(pattern)
        candidates = dict.fromkeys([*self._entries, *self._in_flight])
        removed = [key for key in candidates if regex.search(key)]
        for key in removed:
            self._entries.pop(key, None)
            self._in_flight.pop(key, None)
        for key in removed:
            self._notify(key)
        return removed

    def clear_all(self) -> None:
        """Drop every entry and in-flight marker without notifying listeners."""
        self._entries.clear()
        self._in_flight.clear()

    def add_invalidation_listener(self, listener: InvalidationListener) -> Callable[[], None]:
        """Register ``listener`` to be called with each invalidated key.

        Returns:
            A callable that unregisters the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(key)
            except Exception:
                logger.exception(
                    f"Invalidation listener failed for {key}",
                    extra={"cache_key": key},
                )

    def is_in_flight(self, key: str) -> bool:
        """Check whether a fetch for ``key`` is pending."""
        return key in self._in_flight

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
