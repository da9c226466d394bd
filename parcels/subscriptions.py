"""
Subscription: a uniform cancellable stream.

Store watchers (event log snapshots, courier location records) and the live
location tracker all hand out the same primitive: an async iterator backed by
an asyncio.Queue that the producer pushes into and the consumer drains.

This is a pure asyncio concurrency primitive with no store or network
dependencies.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Generic, Optional, TypeVar

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    """
    Cancellable stream of items.

    - push(item): producer side, ignored once the subscription is closed.
    - close(): producer signals end of stream; consumers finish after draining.
    - cancel(): consumer side, idempotent. Pending items are discarded and the
      optional on_cancel hook (used by stores to unregister) runs exactly once.
    """

    def __init__(self, name: str = "", on_cancel: Optional[Callable[[], None]] = None) -> None:
        self.name = name
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_cancel = on_cancel
        self._closed = False
        self._cancelled = False

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def push(self, item: T) -> bool:
        """Queue an item for the consumer. Returns False if the stream is closed."""
        if self._closed:
            return False
        self._queue.put_nowait(item)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def closed(self) -> bool:
        return self._closed

    def cancel(self) -> None:
        """Stop the stream. Safe to call any number of times."""
        if self._cancelled:
            return
        self._cancelled = True

        # drain whatever the producer already queued
        while not self._queue.empty():
            self._queue.get_nowait()
        self.close()

        if self._on_cancel is not None:
            hook, self._on_cancel = self._on_cancel, None
            try:
                hook()
            except Exception as exc:  # noqa: BLE001
                _LOGGER.debug("Subscription %s cancel hook failed: %s", self.name, exc)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        if self._cancelled:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self._cancelled:
            raise StopAsyncIteration
        return item
