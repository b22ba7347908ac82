"""Fan-out of task notifications to connected stream subscribers.

The task manager publishes into the hub; every open ``/agent/stream``
connection owns one subscription. The hub also keeps each task's
notifications, so a subscriber that filters by task id and connects late
(the caller only learns the id from ``/agent/run``) is replayed what it
missed, terminal record included. Histories of finished tasks are retained
for the most recent ``retained_tasks`` tasks.

Backlogs are bounded: when one overflows, its oldest content notification is
dropped. Terminal (``done``) notifications are never dropped.
"""

import asyncio
from collections import OrderedDict, deque
from collections.abc import AsyncIterator
from typing import Deque, Dict, Optional, Set

from quill.core.logging import get_logger

from .task_types import StreamNotification

logger = get_logger(__name__)


def _append_bounded(backlog: Deque[StreamNotification], notification: StreamNotification, limit: int) -> None:
    """Append, then drop the oldest content notification while over ``limit``."""
    backlog.append(notification)
    while len(backlog) > limit:
        index = next((i for i, queued in enumerate(backlog) if not queued.done), None)
        if index is None:
            # Only terminal records left
            return
        dropped = backlog[index]
        del backlog[index]
        logger.warning(
            "Notification backlog full; dropping oldest content notification",
            extra={"task_id": dropped.task_id},
        )


class Subscription:
    """Pending notifications for one stream connection."""

    def __init__(self, task_id: Optional[str], max_size: int) -> None:
        self.task_id = task_id
        self.max_size = max_size
        self.pending: Deque[StreamNotification] = deque()
        self._ready = asyncio.Event()

    def wants(self, notification: StreamNotification) -> bool:
        return self.task_id is None or notification.task_id == self.task_id

    def push(self, notification: StreamNotification) -> None:
        _append_bounded(self.pending, notification, self.max_size)
        self._ready.set()

    async def next(self) -> StreamNotification:
        while not self.pending:
            self._ready.clear()
            await self._ready.wait()
        return self.pending.popleft()


class NotificationHub:
    def __init__(self, max_queue_size: int = 1000, retained_tasks: int = 100) -> None:
        self._max_queue_size = max_queue_size
        self._retained_tasks = retained_tasks
        self._subscriptions: Set[Subscription] = set()
        self._history: Dict[str, Deque[StreamNotification]] = {}
        # Finished task ids, oldest first
        self._finished: "OrderedDict[str, None]" = OrderedDict()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def history(self, task_id: str) -> list[StreamNotification]:
        return list(self._history.get(task_id, ()))

    def publish(self, notification: StreamNotification) -> None:
        history = self._history.setdefault(notification.task_id, deque())
        _append_bounded(history, notification, self._max_queue_size)
        if notification.done:
            self._retire(notification.task_id)

        for subscription in list(self._subscriptions):
            if subscription.wants(notification):
                subscription.push(notification)

    def _retire(self, task_id: str) -> None:
        self._finished[task_id] = None
        while len(self._finished) > self._retained_tasks:
            expired, _ = self._finished.popitem(last=False)
            self._history.pop(expired, None)

    def open(self, task_id: Optional[str] = None) -> Subscription:
        """Register a subscription; one filtered by task id starts with that task's history."""
        subscription = Subscription(task_id, self._max_queue_size)
        if task_id is not None:
            for notification in self._history.get(task_id, ()):
                subscription.push(notification)
        self._subscriptions.add(subscription)
        logger.debug(
            "Stream subscriber connected",
            extra={"task_id": task_id, "replayed": len(subscription.pending), "subscribers": len(self._subscriptions)},
        )
        return subscription

    def close(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)
        logger.debug("Stream subscriber disconnected", extra={"subscribers": len(self._subscriptions)})

    async def subscribe(self, task_id: Optional[str] = None) -> AsyncIterator[StreamNotification]:
        """Yield published notifications, optionally only those of one task.

        When filtered by task id the iteration ends after that task's
        terminal notification, including one that was published before the
        subscription opened.
        """
        subscription = self.open(task_id)
        try:
            while True:
                notification = await subscription.next()
                yield notification
                if task_id is not None and notification.done:
                    return
        finally:
            self.close(subscription)
