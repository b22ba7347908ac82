import json

import pytest

from quill.core.streaming import DONE_FRAME, create_sse_stream_generator, format_sse


class Event:
    def __init__(self, payload):
        self.payload = payload

    def to_dict(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


async def events(*items, fail_with=None):
    for item in items:
        yield item
    if fail_with is not None:
        raise fail_with


async def collect(generator):
    return [frame async for frame in generator]


def test_format_sse():
    assert format_sse({"taskId": "t1", "chunk": "Hi"}) == 'data: {"taskId": "t1", "chunk": "Hi"}\n\n'


@pytest.mark.asyncio
async def test_frames_each_event_and_closes_with_done():
    frames = await collect(create_sse_stream_generator(events(Event({"chunk": "a"}), Event({"chunk": "b"}))))

    assert frames == [format_sse({"chunk": "a"}), format_sse({"chunk": "b"}), DONE_FRAME]


@pytest.mark.asyncio
async def test_unserializable_event_is_skipped():
    frames = await collect(
        create_sse_stream_generator(events(Event({"chunk": "a"}), Event(TypeError("bad")), Event({"chunk": "c"})))
    )

    assert frames == [format_sse({"chunk": "a"}), format_sse({"chunk": "c"}), DONE_FRAME]


@pytest.mark.asyncio
async def test_generator_failure_sends_error_frame():
    frames = await collect(
        create_sse_stream_generator(
            events(Event({"chunk": "a"}), fail_with=RuntimeError("hub exploded")),
            error_code="AGENT_STREAM_ERROR",
        )
    )

    assert len(frames) == 3
    assert frames[0] == format_sse({"chunk": "a"})
    assert frames[2] == DONE_FRAME

    error = json.loads(frames[1][len("data: ") :])
    assert error["type"] == "error"
    assert error["code"] == "AGENT_STREAM_ERROR"
    assert "hub exploded" not in error["message"]
    assert error["id"]
