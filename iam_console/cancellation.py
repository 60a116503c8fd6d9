"""Cooperative cancellation for in-flight requests."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised when a CancelToken fires before its operation completes."""


class CancelToken:
    """One-shot cancellation signal shared by a view and the calls it issues.

    Cancelling aborts any request currently awaited through ``run`` and makes
    later ``run`` calls fail immediately.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelled(self.reason or "cancelled")

    async def run(self, aw: Awaitable[T]) -> T:
        """Await ``aw`` unless the token fires first."""
        if self.cancelled:
            if isinstance(aw, Coroutine):
                aw.close()
            self.raise_if_cancelled()

        task: asyncio.Future[T] = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise OperationCancelled(self.reason or "cancelled")


async def run_cancellable(aw: Coroutine[Any, Any, T], cancel: CancelToken | None) -> T:
    if cancel is None:
        return await aw
    return await cancel.run(aw)
