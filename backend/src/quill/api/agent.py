"""Agent API endpoints for Quill.

The transport bridge between a desktop front-end and the task manager:
``run`` and ``cancel`` forward to the manager, ``stream`` relays its
notifications as server-sent events.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from ..core.logging import get_logger
from ..core.streaming import create_sse_stream_generator
from ..providers.adapter_base import ProviderOptions
from ..services.notification_hub import NotificationHub
from ..services.task_manager import TaskManager
from ..services.task_types import CancelResult
from .dependencies import get_notification_hub, get_task_manager

logger = get_logger(__name__)
router = APIRouter(prefix="/agent", tags=["agent"])


class RunRequest(BaseModel):
    input: str = ""
    opts: Optional[ProviderOptions] = None


class RunResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId")


class CancelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId")


@router.post("/run", response_model=RunResponse, response_model_by_alias=True, summary="Start a generation")
async def run_agent(body: RunRequest, manager: TaskManager = Depends(get_task_manager)):
    task_id = manager.start(body.input, body.opts)
    return RunResponse(task_id=task_id)


@router.post("/cancel", response_model=CancelResult, summary="Cancel a generation")
async def cancel_agent(body: CancelRequest, manager: TaskManager = Depends(get_task_manager)):
    return manager.cancel(body.task_id)


@router.get("/stream", summary="Stream task notifications as server-sent events")
async def stream_agent(
    task_id: Optional[str] = Query(None, alias="taskId"),
    hub: NotificationHub = Depends(get_notification_hub),
):
    logger.debug("Opening notification stream", extra={"task_id": task_id})
    return StreamingResponse(
        create_sse_stream_generator(hub.subscribe(task_id), error_context="agent_stream"),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
