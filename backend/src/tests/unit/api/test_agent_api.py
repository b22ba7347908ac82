import asyncio
import json
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from quill.main import create_app
from tests.unit.providers.shared import (
    OLLAMA_HELLO_LINES,
    RecordingTransport,
    body_stream,
    fragments,
    ndjson_response,
)


def blocking_ollama(request: httpx.Request) -> httpx.Response:
    return ndjson_response(fragments([b'{"response":"Hel","done":false}\n'], block_after=True))


@pytest.fixture(scope="function")
def hello_transport():
    return RecordingTransport(lambda request: ndjson_response(body_stream(OLLAMA_HELLO_LINES)))


@pytest.fixture(scope="function")
def api_client(settings, hello_transport):
    with TestClient(create_app(settings, client=hello_transport.client())) as client:
        yield client


def test_run_returns_task_id(api_client):
    response = api_client.post("/agent/run", json={"input": "hi", "opts": {"provider": "ollama"}})

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"taskId"}
    assert isinstance(body["taskId"], str) and body["taskId"]


def test_run_rejects_empty_input(api_client, hello_transport):
    response = api_client.post("/agent/run", json={"input": "   "})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "EMPTY_PROMPT"
    assert error["message"] == "Input prompt is required"
    assert hello_transport.requests == []


def test_run_without_input_field(api_client):
    response = api_client.post("/agent/run", json={})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "EMPTY_PROMPT"


def test_run_reports_missing_credential(api_client, hello_transport):
    response = api_client.post("/agent/run", json={"input": "hi", "opts": {"provider": "openai"}})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "MISSING_CREDENTIAL"
    assert error["message"] == "OPENAI_API_KEY is not set."
    assert hello_transport.requests == []


def test_run_reports_unknown_provider(api_client):
    response = api_client.post("/agent/run", json={"input": "hi", "opts": {"provider": "nope"}})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "UNKNOWN_PROVIDER"


def test_cancel_unknown_task(api_client):
    response = api_client.post("/agent/cancel", json={"taskId": "does-not-exist"})

    assert response.status_code == 200
    assert response.json() == {"ok": False}


def test_cancel_running_task(settings):
    transport = RecordingTransport(blocking_ollama)
    with TestClient(create_app(settings, client=transport.client())) as client:
        task_id = client.post("/agent/run", json={"input": "hi"}).json()["taskId"]

        assert client.post("/agent/cancel", json={"taskId": task_id}).json() == {"ok": True}
        assert client.post("/agent/cancel", json={"taskId": task_id}).json() == {"ok": False}


def test_health(api_client):
    response = api_client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["version"] == "0.1.0"
    assert body["providers"] == ["ollama", "openai"]
    assert body["activeTasks"] == 0


def parse_frames(text: str) -> list:
    frames = [block[len("data: ") :] for block in text.split("\n\n") if block.startswith("data: ")]
    return [frame if frame == "[DONE]" else json.loads(frame) for frame in frames]


@pytest.mark.asyncio
async def test_stream_relays_notifications_until_terminal(settings):
    transport = RecordingTransport(blocking_ollama)
    app = create_app(settings, client=transport.client())

    async with app.router.lifespan_context(app):
        hub = app.state.notification_hub
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://bridge") as api:
            task_id = (await api.post("/agent/run", json={"input": "hi"})).json()["taskId"]

            stream = asyncio.create_task(api.get("/agent/stream", params={"taskId": task_id}))
            for _ in range(200):
                if hub.subscriber_count:
                    break
                await asyncio.sleep(0.005)
            assert hub.subscriber_count == 1

            assert (await api.post("/agent/cancel", json={"taskId": task_id})).json() == {"ok": True}
            response = await asyncio.wait_for(stream, timeout=2)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    frames = parse_frames(response.text)
    assert frames[-1] == "[DONE]"
    assert frames[-2] == {"taskId": task_id, "chunk": "", "event": "cancelled", "done": True}


def test_stream_opened_after_task_finished_still_ends(settings):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport = RecordingTransport(refuse)
    with TestClient(create_app(settings, client=transport.client())) as client:
        task_id = client.post("/agent/run", json={"input": "hi"}).json()["taskId"]
        for _ in range(200):
            if client.get("/health").json()["activeTasks"] == 0:
                break
            time.sleep(0.005)

        response = client.get("/agent/stream", params={"taskId": task_id})

    frames = parse_frames(response.text)
    assert frames[-1] == "[DONE]"
    [terminal] = frames[:-1]
    assert terminal["taskId"] == task_id
    assert terminal["done"] is True
    assert terminal["event"] == "error"
    assert terminal["chunk"]["code"] == "UPSTREAM_CONNECTION_ERROR"
