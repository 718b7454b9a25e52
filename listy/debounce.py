import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class Debounced:
    """Trailing-edge debounce on the running event loop.

    Every call restarts a ``delay`` second timer; only the last call made
    before the timer runs out reaches ``callback``, with that call's
    arguments. Coroutine callbacks run as a task held on the instance;
    their errors are logged.
    """

    def __init__(self, callback: Callable[..., Any], delay: float):
        self.callback = callback
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Future] = None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay, self._fire, args, kwargs)

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        """Drop the pending call and stop a callback task still running."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def _fire(self, args, kwargs) -> None:
        self._handle = None
        result = self.callback(*args, **kwargs)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            task.add_done_callback(self._finished)
            self._task = task

    def _finished(self, task: asyncio.Future) -> None:
        if self._task is task:
            self._task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Debounced call to %r failed",
                self.callback,
                exc_info=(type(exc), exc, exc.__traceback__),
            )


def debounce(callback: Callable[..., Any], delay: float) -> Debounced:
    return Debounced(callback, delay)
