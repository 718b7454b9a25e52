"""Client side query cache.

Values are keyed by query identity, e.g. ``("list.byUserId",)`` or
``("recipe.byId", "<id>")``. Fetches run as tasks so a mutation can cancel
a read that would otherwise overwrite its optimistic value.
"""

import asyncio
import contextlib
import copy
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

from .rpc import RemoteError

logger = logging.getLogger(__name__)

QueryKey = Tuple[Hashable, ...]
Fetcher = Callable[[], Awaitable[Any]]

_MISSING = object()


@dataclass(frozen=True)
class Snapshot:
    key: QueryKey
    present: bool
    value: Any = None


class CacheTransaction:
    """Speculative write to one cache entry.

    ``begin`` copies the current entry, ``apply`` writes over it,
    ``commit`` replaces the speculative value with a fresh server read and
    ``rollback`` puts the copy back untouched.
    """

    def __init__(self, cache: "QueryCache", key: QueryKey):
        self.cache = cache
        self.key = key

    def begin(self) -> Snapshot:
        value = self.cache.get_data(self.key, _MISSING)
        if value is _MISSING:
            return Snapshot(self.key, present=False)
        return Snapshot(self.key, present=True, value=copy.deepcopy(value))

    def apply(self, transform: Callable[[Any], Any]) -> None:
        self.cache.set_data(self.key, transform)

    async def commit(self) -> None:
        await self.cache.invalidate(self.key)

    def rollback(self, snapshot: Snapshot) -> None:
        if snapshot.present:
            self.cache.set_data(self.key, snapshot.value)
        else:
            self.cache.remove(self.key)


class QueryCache:
    def __init__(self):
        self._data: Dict[QueryKey, Any] = {}
        self._fetchers: Dict[QueryKey, Fetcher] = {}
        self._inflight: Dict[QueryKey, asyncio.Task] = {}

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._data

    def keys(self):
        return list(self._data)

    def get_data(self, key: QueryKey, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set_data(self, key: QueryKey, value: Any) -> None:
        """Store ``value``, or ``value(current)`` when given a callable."""
        if callable(value):
            value = value(self._data.get(key))
        self._data[key] = value

    def remove(self, key: QueryKey) -> None:
        self._data.pop(key, None)

    def transaction(self, key: QueryKey) -> CacheTransaction:
        return CacheTransaction(self, key)

    def is_fetching(self, key: QueryKey) -> bool:
        task = self._inflight.get(key)
        return task is not None and not task.done()

    async def _run(self, key: QueryKey, fetcher: Fetcher) -> Any:
        try:
            value = await fetcher()
            self._data[key] = value
            return value
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    async def fetch(self, key: QueryKey, fetcher: Optional[Fetcher] = None) -> Any:
        """Read ``key`` from the server, sharing any read already in flight.

        A read cancelled by a mutation resolves to whatever the cache holds
        at that moment instead of raising.
        """
        if fetcher is not None:
            self._fetchers[key] = fetcher
        fetcher = self._fetchers[key]

        task = self._inflight.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(self._run(key, fetcher))
            self._inflight[key] = task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return self._data.get(key)
            raise

    async def cancel(self, key: QueryKey) -> None:
        task = self._inflight.pop(key, None)
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("Cancelled in-flight fetch for %s", key)

    async def invalidate(self, key: QueryKey) -> None:
        """Refetch ``key`` when a fetcher is known, otherwise drop it.

        The current value stays readable until the fresh one replaces it. If
        the refetch fails the entry is dropped so the next read goes to the
        server again.
        """
        await self.cancel(key)
        if key not in self._fetchers:
            self.remove(key)
            return
        try:
            await self.fetch(key)
        except RemoteError as exc:
            logger.warning("Refetch of %s failed: %s", key, exc)
            self.remove(key)

    async def invalidate_matching(self, predicate: Callable[[QueryKey], bool]) -> None:
        for key in [k for k in set(self._data) | set(self._fetchers) if predicate(k)]:
            await self.invalidate(key)
