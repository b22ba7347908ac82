"""FastAPI dependencies resolving the objects created in the app lifespan."""

from fastapi import Request

from ..services.notification_hub import NotificationHub
from ..services.task_manager import TaskManager


def get_task_manager(request: Request) -> TaskManager:
    return request.app.state.task_manager


def get_notification_hub(request: Request) -> NotificationHub:
    return request.app.state.notification_hub
