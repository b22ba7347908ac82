"""Types shared by the task manager and the transport bridge."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from quill.core.cancellation import CancellationToken


class TaskState(str, Enum):
    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"


# Terminal notification event names
EVENT_END = "end"
EVENT_CANCELLED = "cancelled"
EVENT_ERROR = "error"


@dataclass
class TaskRecord:
    """One generation request tracked by the task manager."""

    task_id: str
    provider: str
    model: str
    token: CancellationToken = field(default_factory=CancellationToken)
    state: TaskState = TaskState.RUNNING
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class StreamNotification(BaseModel):
    """Record pushed to the caller for every chunk and once at termination.

    ``chunk`` is incremental text, or ``{"message", "code"}`` on failure.
    """

    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId")
    chunk: Union[str, Dict[str, Any]] = ""
    event: Optional[str] = None
    done: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CancelResult(BaseModel):
    ok: bool
