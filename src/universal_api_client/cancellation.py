"""Cancellation tokens shared by requests, retries and pagination."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Awaitable, Callable, TypeVar

from .exceptions import ApiCancelledError

T = TypeVar("T")


class CancellationToken:
    """A one-shot, thread-safe cancellation signal.

    Callbacks registered with :meth:`add_callback` run once, on the thread
    that calls :meth:`cancel`. Registering on an already cancelled token runs
    the callback immediately.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], Any]] = []
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Request cancelled") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], Any]) -> Callable[[], None]:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def remove() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return remove
        callback()
        return lambda: None

    def wait(self, timeout: float | None = None) -> bool:
        """Block for up to ``timeout`` seconds; True when cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ApiCancelledError(self.reason or "Request cancelled")


async def run_cancellable(
    awaitable: Awaitable[T],
    token: CancellationToken | None = None,
    timeout: float | None = None,
) -> T:
    """Await ``awaitable`` bounded by ``timeout`` and aborted by ``token``.

    A timeout surfaces as :class:`asyncio.TimeoutError`; the token firing
    surfaces as :class:`ApiCancelledError`.
    """
    if token is not None and token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        token.raise_if_cancelled()

    task = asyncio.ensure_future(awaitable)
    remove: Callable[[], None] | None = None
    if token is not None:
        loop = asyncio.get_running_loop()
        remove = token.add_callback(lambda: loop.call_soon_threadsafe(task.cancel))
    try:
        return await asyncio.wait_for(task, timeout)
    except asyncio.CancelledError:
        if token is not None and token.cancelled:
            raise ApiCancelledError(token.reason or "Request cancelled") from None
        raise
    finally:
        if remove is not None:
            remove()
