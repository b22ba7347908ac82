"""Decoders turning one unit of back-end wire data into a ``StreamChunk``.

Both functions are pure: no I/O, no shared state.
"""

import json
from typing import Any, Optional

import jmespath

from quill.core.exceptions import MalformedPayloadError

from .events import StreamChunk

DONE_SENTINEL = "[DONE]"

_DELTA_CONTENT = jmespath.compile("choices[0].delta.content")


def _loads(data: str) -> Any:
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise MalformedPayloadError(str(e), payload=data) from e


def _delta_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            text = part.get("text") if isinstance(part, dict) else None
            parts.append(text if isinstance(text, str) else "")
        return "".join(parts)
    return ""


def parse_event_stream_payload(data: str) -> StreamChunk:
    """Decode the data of one chat-completions server-sent event.

    ``[DONE]`` marks the end of the stream; anything else must be a JSON
    delta record whose first choice carries the incremental content, either as
    a string or as a list of ``{"text": ...}`` parts.
    """
    if data.strip() == DONE_SENTINEL:
        return StreamChunk(text="", done=True, event="done")

    parsed = _loads(data)
    content = _DELTA_CONTENT.search(parsed) if isinstance(parsed, dict) else None
    return StreamChunk(text=_delta_text(content), raw=parsed)


def parse_ndjson_line(line: Optional[str]) -> Optional[StreamChunk]:
    """Decode one line of an Ollama ``/api/generate`` stream.

    Returns None for empty input.
    """
    if not line:
        return None

    parsed = _loads(line)
    if not isinstance(parsed, dict):
        return StreamChunk(text="", raw=parsed)

    response = parsed.get("response")
    return StreamChunk(
        text=response if isinstance(response, str) else "",
        done=bool(parsed.get("done")),
        raw=parsed,
    )
