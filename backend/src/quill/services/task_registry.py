"""Registry of in-flight tasks keyed by task id.

Owned by a ``TaskManager``; mutated only on task start (insert) and on
cancellation or termination (remove). All access happens on the event loop
thread, so every operation is atomic from the caller's point of view.
"""

from typing import Dict, Iterator, Optional

from .task_types import TaskRecord


class TaskRegistry:
    def __init__(self) -> None:
        self._tasks: Dict[str, TaskRecord] = {}

    def add(self, record: TaskRecord) -> None:
        if record.task_id in self._tasks:
            raise KeyError(f"Task '{record.task_id}' is already registered")
        self._tasks[record.task_id] = record

    def pop(self, task_id: str) -> Optional[TaskRecord]:
        return self._tasks.pop(task_id, None)

    def __iter__(self) -> Iterator[str]:
        # Snapshot, so callers may remove entries while iterating
        return iter(list(self._tasks))
