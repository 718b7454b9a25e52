import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from .cache import QueryCache, QueryKey
from .notify import Notifier
from .rpc import RemoteError

logger = logging.getLogger(__name__)

V = TypeVar("V")
R = TypeVar("R")


class OptimisticMutation(Generic[V, R]):
    """Remote write that shows up in the cache before the server answers.

    Each call cancels pending reads of ``key``, snapshots the entry, applies
    ``transform(current, variables)``, then awaits ``remote(variables)``.
    Success refetches the entry from the server; a :class:`RemoteError`
    restores the snapshot and is reported through ``notifier`` instead of
    being raised.

    ``empty`` builds the base value for a cold cache. Without it a cold
    cache is left alone and only the remote call happens.
    """

    def __init__(
        self,
        cache: QueryCache,
        key: QueryKey,
        remote: Callable[[V], Awaitable[R]],
        transform: Callable[[Any, V], Any],
        *,
        notifier: Notifier,
        empty: Optional[Callable[[], Any]] = None,
        on_success: Optional[Callable[[R, V], None]] = None,
    ):
        self.cache = cache
        self.key = key
        self.remote = remote
        self.transform = transform
        self.notifier = notifier
        self.empty = empty
        self.on_success = on_success
        self.status = "idle"
        self.error: Optional[RemoteError] = None

    def _speculate(self, current: Any, variables: V) -> Any:
        if current is None:
            if self.empty is None:
                return None
            current = self.empty()
        return self.transform(current, variables)

    async def __call__(self, variables: V) -> Optional[R]:
        self.status = "loading"
        self.error = None
        await self.cache.cancel(self.key)

        tx = self.cache.transaction(self.key)
        snapshot = tx.begin()
        if snapshot.present or self.empty is not None:
            tx.apply(lambda current: self._speculate(current, variables))

        try:
            result = await self.remote(variables)
        except RemoteError as exc:
            tx.rollback(snapshot)
            logger.warning("Mutation on %s rolled back: %s", self.key, exc)
            self.status = "error"
            self.error = exc
            self.notifier.error(exc.message)
            return None

        await tx.commit()
        self.status = "success"
        if self.on_success is not None:
            self.on_success(result, variables)
        return result
