import asyncio
import json
from typing import Any, AsyncIterator, Callable, Iterable, List, Optional

import httpx

OLLAMA_BASE = "http://ollama.test"
OPENAI_BASE = "https://api.openai.test/v1"

## WIRE PAYLOADS

OLLAMA_HELLO_LINES = (
    b'{"response":"Hel","done":false}\n'
    b'{"response":"lo","done":false}\n'
    b'{"response":"","done":true}\n'
)

OPENAI_HI_DELTA = {"choices": [{"delta": {"content": "Hi"}}]}
OPENAI_PARTS_DELTA = {
    "choices": [
        {
            "delta": {
                "content": [
                    {"type": "text", "text": "Hello"},
                    {"type": "image"},
                    {"type": "text", "text": ", world"},
                ]
            }
        }
    ]
}
OPENAI_ROLE_DELTA = {
    "id": "chatcmpl-1",
    "object": "chat.completion.chunk",
    "choices": [{"index": 0, "delta": {"role": "assistant"}, "finish_reason": None}],
}
OPENAI_STOP_DELTA = {
    "id": "chatcmpl-1",
    "object": "chat.completion.chunk",
    "choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}],
}

## BYTE SOURCES


def body_stream(
    data: bytes,
    size: Optional[int] = None,
    on_fragment: Optional[Callable[[int], None]] = None,
) -> AsyncIterator[bytes]:
    """Deliver ``data`` in fragments of ``size`` bytes (one fragment when None)."""

    async def gen():
        step = size or max(len(data), 1)
        for index, start in enumerate(range(0, len(data), step)):
            if on_fragment is not None:
                on_fragment(index)
            yield data[start : start + step]

    return gen()


def fragments(
    parts: Iterable[bytes],
    block_after: bool = False,
    reached: Optional[asyncio.Event] = None,
) -> AsyncIterator[bytes]:
    """Yield ``parts`` as-is; with ``block_after`` never finish afterwards."""

    async def gen():
        for part in parts:
            yield part
        if block_after:
            if reached is not None:
                reached.set()
            await asyncio.Event().wait()

    return gen()


def ndjson(*records: dict) -> bytes:
    return "".join(json.dumps(record) + "\n" for record in records).encode("utf-8")


def sse(*payloads: str) -> bytes:
    return "".join(f"data: {payload}\n\n" for payload in payloads).encode("utf-8")


## HTTP


class RecordingTransport:
    """Callable for ``httpx.MockTransport`` that records every request."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def ndjson_response(stream: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, headers={"content-type": "application/x-ndjson"}, content=stream)


def sse_response(stream: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, headers={"content-type": "text/event-stream"}, content=stream)


async def collect(stream: AsyncIterator[Any]) -> List[Any]:
    return [item async for item in stream]
