"""Health check endpoint for Quill."""

import time

from fastapi import APIRouter, Depends

from ..providers.adapter_base import available_providers
from ..services.notification_hub import NotificationHub
from ..services.task_manager import TaskManager
from .dependencies import get_notification_hub, get_task_manager

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Health check")
async def health_check(
    manager: TaskManager = Depends(get_task_manager),
    hub: NotificationHub = Depends(get_notification_hub),
):
    settings = manager.settings
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.version,
        "environment": settings.environment,
        "providers": available_providers(),
        "activeTasks": len(manager.active_task_ids),
        "subscribers": hub.subscriber_count,
    }
