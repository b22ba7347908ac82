"""SSE framing for notifications relayed by the transport bridge."""

import json
import uuid
from collections.abc import AsyncGenerator
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)

DONE_FRAME = "data: [DONE]\n\n"


def format_sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def create_sse_stream_generator(
    event_generator: AsyncGenerator[Any, None],
    error_context: str = "streaming",
    error_code: str = "STREAM_ERROR",
) -> AsyncGenerator[str, None]:
    """Serialize events from ``event_generator`` as SSE ``data:`` frames.

    Events must provide ``to_dict()``. An event that fails to serialize is
    logged and skipped. If the generator itself raises, one error frame with
    a correlation id is sent. ``data: [DONE]`` always closes the stream.
    """
    try:
        async for event in event_generator:
            try:
                frame = format_sse(event.to_dict())
            except Exception:
                logger.exception(f"Error serializing event during {error_context}")
                continue
            yield frame
    except GeneratorExit:
        # Client disconnected
        logger.info(f"Client disconnected from {error_context} stream")
        return
    except Exception:
        correlation_id = str(uuid.uuid4())
        logger.exception(f"Streaming error during {error_context}", extra={"correlation_id": correlation_id})
        yield format_sse(
            {
                "type": "error",
                "code": error_code,
                "message": "An internal streaming error occurred",
                "id": correlation_id,
            }
        )
    yield DONE_FRAME
