import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from agent_bridge.common.models import StreamEvent
from agent_bridge.core.agents.sidecar_agent import SidecarAgent
from agent_bridge.core.errors import (
    AgentBridgeError,
    LaunchError,
    NoActiveRequestError,
    ProcessFailure,
    StreamReadError,
)
from agent_bridge.host.api import create_app, format_sse_event
from agent_bridge.host.errors import error_kind, http_error

HELLO_AGENT = """
print("starting", file=sys.stderr, flush=True)
emit({"type": "system", "session_id": "abc"})
emit({"type": "assistant", "message": {"content": [{"type": "text", "text": "Hello"}]}})
emit({"type": "result", "subtype": "success", "result": "Hello there"})
"""


def _sse_events(body: str) -> list[StreamEvent]:
    events = []
    for chunk in body.split("\n\n"):
        for line in chunk.splitlines():
            if line.startswith("data: "):
                events.append(StreamEvent.model_validate_json(line[len("data: "):]))
    return events


def test_health(write_agent, make_coordinator) -> None:
    client = TestClient(create_app(make_coordinator(write_agent(HELLO_AGENT))))
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json().get("ok") is True


def test_query_streams_events_then_final(write_agent, make_coordinator) -> None:
    coordinator = make_coordinator(write_agent(HELLO_AGENT))
    client = TestClient(create_app(coordinator))

    resp = client.post("/v1/query", json={"prompt": "hi", "include_raw": True})

    assert resp.status_code == 200, resp.text
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert "event: final" in resp.text
    events = _sse_events(resp.text)
    protocol = [e.meta["type"] for e in events if e.type == "event"]
    assert protocol == ["init", "assistant_text", "result"]
    assert len([e for e in events if e.type == "raw"]) == 3
    assert any(e.type == "diagnostic" and e.text == "starting" for e in events)
    final = events[-1]
    assert final.type == "final"
    assert final.text == "Hello there"
    assert final.meta == {"state": "succeeded", "session_id": "abc"}

    assert client.get("/v1/session").json() == {"session_id": "abc"}
    assert client.delete("/v1/session").json() == {"ok": True}
    assert client.get("/v1/session").json() == {"session_id": None}


def test_query_launch_error_is_streamed(make_coordinator, tmp_path: Path) -> None:
    agent = SidecarAgent("agent.py", node_binary=str(tmp_path / "missing-node"))
    client = TestClient(create_app(make_coordinator(agent)))

    resp = client.post("/v1/query", json={"prompt": "hi"})

    events = _sse_events(resp.text)
    assert events[-1].type == "error"
    assert events[-1].meta["kind"] == "launch_error"


def test_answer_without_query_is_conflict(write_agent, make_coordinator) -> None:
    client = TestClient(create_app(make_coordinator(write_agent(HELLO_AGENT))))

    resp = client.post(
        "/v1/query/answer",
        json={"question_id": "q1", "questions": [{"question": "?"}], "answers": {"?": "yes"}},
    )

    assert resp.status_code == 409
    assert resp.json()["detail"]["kind"] == "no_active_query"


def test_cancel_without_query(write_agent, make_coordinator) -> None:
    client = TestClient(create_app(make_coordinator(write_agent(HELLO_AGENT))))
    assert client.post("/v1/query/cancel").json() == {"ok": True, "cancelled": False}


def test_format_sse_event_is_single_data_line() -> None:
    text = format_sse_event(StreamEvent(type="final", text="a\nb"))
    assert text.startswith("event: final\ndata: ")
    assert text.endswith("\n\n")
    assert json.loads(text.split("data: ", 1)[1])["text"] == "a\nb"


@pytest.mark.parametrize(
    "exc, kind",
    [
        (LaunchError("claude", "not found"), "launch_error"),
        (ProcessFailure(1, ""), "process_failure"),
        (NoActiveRequestError("idle"), "no_active_query"),
        (StreamReadError("Read error: closed"), "agent_error"),
        (AgentBridgeError("other"), "agent_error"),
    ],
)
def test_error_kind(exc, kind) -> None:
    assert error_kind(exc) == kind


def test_http_error_body() -> None:
    err = http_error(NoActiveRequestError("No active query to answer"), status_code=409)
    assert err.status_code == 409
    assert err.detail == {"kind": "no_active_query", "message": "No active query to answer"}
