"""Task lifecycle management for streaming generations.

The manager accepts a prompt, picks the stream producer registered for the
requested provider, and drives it on its own asyncio task. Every chunk becomes
one notification on the injected sink; each task ends with exactly one
terminal notification (``done=True``) whether it completes, is cancelled, or
fails.
"""

import asyncio
import inspect
import uuid
from collections.abc import Awaitable, Callable
from contextlib import aclosing
from datetime import UTC, datetime
from typing import Any, Dict, Optional, Set, Union

import httpx

from quill.core.config import Settings, get_settings_instance
from quill.core.exceptions import EmptyPromptError, QuillException
from quill.core.logging import get_logger
from quill.providers.adapter_base import BaseStreamProducer, ProviderOptions, get_producer_class

from .task_registry import TaskRegistry
from .task_types import (
    EVENT_CANCELLED,
    EVENT_END,
    EVENT_ERROR,
    CancelResult,
    StreamNotification,
    TaskRecord,
    TaskState,
)

logger = get_logger(__name__)

NotificationSink = Callable[[StreamNotification], Union[None, Awaitable[None]]]


class TaskManager:
    """Starts, tracks and cancels streaming generation tasks."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        sink: NotificationSink,
        settings: Optional[Settings] = None,
        registry: Optional[TaskRegistry] = None,
    ):
        self.client = client
        self.settings = settings or get_settings_instance()
        self._sink = sink
        self._registry = registry if registry is not None else TaskRegistry()
        # Strong references so running drive loops are not garbage collected
        self._background: Set[asyncio.Task] = set()

    @property
    def active_task_ids(self) -> list[str]:
        return list(self._registry)

    def start(self, prompt: str, options: Union[ProviderOptions, Dict[str, Any], None] = None) -> str:
        """Accept a generation request and return its task id immediately.

        Raises ``EmptyPromptError``, ``UnknownProviderError`` or
        ``MissingCredentialError`` before any task exists.
        """
        if not prompt or not prompt.strip():
            raise EmptyPromptError()

        if options is None:
            options = ProviderOptions()
        elif not isinstance(options, ProviderOptions):
            options = ProviderOptions.model_validate(options)

        provider = (options.provider or self.settings.default_provider).strip().lower()
        producer_cls = get_producer_class(provider)
        params = producer_cls.resolve_params(options, self.settings)
        producer = producer_cls(params, self.client)

        record = TaskRecord(task_id=str(uuid.uuid4()), provider=provider, model=params.model)
        self._registry.add(record)

        task = asyncio.get_running_loop().create_task(self._drive(record, producer, prompt))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

        logger.info(
            "Task started",
            extra={"task_id": record.task_id, "provider": provider, "model": params.model},
        )
        return record.task_id

    def cancel(self, task_id: str) -> CancelResult:
        """Request cancellation of a running task.

        Unknown or already finished tasks yield ``ok=False``.
        """
        record = self._registry.pop(task_id)
        if record is None:
            logger.debug("Cancel requested for inactive task", extra={"task_id": task_id})
            return CancelResult(ok=False)

        record.token.cancel()
        logger.info("Task cancellation requested", extra={"task_id": task_id})
        return CancelResult(ok=True)

    async def drain(self) -> None:
        """Wait until every drive loop started so far has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel all running tasks and wait for their terminal notifications."""
        for task_id in self._registry:
            self.cancel(task_id)
        await self.drain()

    async def _drive(self, record: TaskRecord, producer: BaseStreamProducer, prompt: str) -> TaskState:
        try:
            await self._consume(record, producer, prompt)
        except asyncio.CancelledError:
            record.token.cancel("task interrupted")
            await self._finish(record, TaskState.CANCELLED)
            raise
        except Exception as e:
            if record.token.cancelled:
                # Errors surfacing after an abort are a side effect of the abort
                logger.debug("Error after cancellation ignored", extra={"task_id": record.task_id, "error": str(e)})
                await self._finish(record, TaskState.CANCELLED)
            elif isinstance(e, QuillException):
                logger.warning(
                    "Task failed",
                    extra={"task_id": record.task_id, "error_code": e.error_code, "error": e.message},
                )
                await self._finish(record, TaskState.FAILED, e.to_payload())
            else:
                logger.exception("Unexpected error while streaming", extra={"task_id": record.task_id})
                await self._finish(
                    record,
                    TaskState.FAILED,
                    {"message": str(e) or type(e).__name__, "code": "INTERNAL_ERROR"},
                )
        else:
            await self._finish(record, TaskState.CANCELLED if record.token.cancelled else TaskState.COMPLETED)
        finally:
            self._registry.pop(record.task_id)
        return record.state

    async def _consume(self, record: TaskRecord, producer: BaseStreamProducer, prompt: str) -> None:
        async with aclosing(producer.stream(prompt, record.token)) as chunks:
            async for chunk in chunks:
                if record.token.cancelled:
                    return
                if chunk.text or not chunk.done:
                    await self._emit(
                        StreamNotification(
                            task_id=record.task_id,
                            chunk=chunk.text,
                            event=None if chunk.done else chunk.event,
                        )
                    )
                if chunk.done:
                    return

    async def _finish(self, record: TaskRecord, state: TaskState, error: Optional[Dict[str, Any]] = None) -> None:
        record.state = state
        self._registry.pop(record.task_id)

        if state is TaskState.FAILED:
            notification = StreamNotification(task_id=record.task_id, chunk=error or {}, done=True, event=EVENT_ERROR)
        elif state is TaskState.CANCELLED:
            notification = StreamNotification(task_id=record.task_id, chunk="", done=True, event=EVENT_CANCELLED)
        else:
            notification = StreamNotification(task_id=record.task_id, chunk="", done=True, event=EVENT_END)

        elapsed = datetime.now(UTC) - record.created_at
        logger.info(
            "Task finished",
            extra={"task_id": record.task_id, "state": state.value, "elapsed_ms": int(elapsed.total_seconds() * 1000)},
        )
        await self._emit(notification)

    async def _emit(self, notification: StreamNotification) -> None:
        try:
            result = self._sink(notification)
            if inspect.isawaitable(result):
                await result
        except Exception:
            # A failing sink must not take the task down with it
            logger.exception("Error delivering notification", extra={"task_id": notification.task_id})
