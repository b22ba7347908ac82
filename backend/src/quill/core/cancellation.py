"""Cooperative cancellation for in-flight generations.

A ``CancellationToken`` is handed by reference to a stream producer. Awaiting
network work through ``guard`` or ``iterate`` races that work against the
token, so cancelling aborts the pending read instead of waiting for the next
fragment to arrive.
"""

import asyncio
import contextlib
import inspect
from collections.abc import AsyncIterable, AsyncIterator, Awaitable
from typing import TypeVar

from .exceptions import TaskAbortedError

T = TypeVar("T")


class CancellationToken:
    """Revocable signal observed cooperatively by producers."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Trigger the signal. Further calls are no-ops."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise TaskAbortedError(self._reason or "Task aborted")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        Raises ``TaskAbortedError`` if the token is (or becomes) cancelled
        before the operation completes; the operation is then cancelled.
        """
        if self.cancelled:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        operation = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({operation, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            waiter.cancel()
            # The operation must be unwound before the caller releases the resources it uses
            operation.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await operation
            raise

        if operation.done():
            waiter.cancel()
            return operation.result()

        operation.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await operation
        self.raise_if_cancelled()
        raise AssertionError("unreachable")  # pragma: no cover

    async def iterate(self, source: AsyncIterable[T]) -> AsyncIterator[T]:
        """Yield items from ``source`` until it is exhausted or the token fires.

        ``source`` is closed when iteration stops for any reason.
        """
        iterator = source.__aiter__()
        try:
            while True:
                self.raise_if_cancelled()
                try:
                    item = await self.guard(iterator.__anext__())
                except StopAsyncIteration:
                    return
                yield item
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()
