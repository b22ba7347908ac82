"""
Services package for Quill.

Task lifecycle management and notification fan-out.
"""

from .notification_hub import NotificationHub
from .task_manager import TaskManager
from .task_registry import TaskRegistry
from .task_types import CancelResult, StreamNotification, TaskRecord, TaskState

__all__ = [
    "CancelResult",
    "NotificationHub",
    "StreamNotification",
    "TaskManager",
    "TaskRecord",
    "TaskRegistry",
    "TaskState",
]
