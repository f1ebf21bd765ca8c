"""FastAPI app for the local Agent Host.

Exposes the request coordinator over HTTP:
- /health: liveness check
- /v1/session: read or clear the conversation session
- /v1/query: run a query, streaming events as server-sent events
- /v1/query/answer, /v1/query/cancel: talk to the running query
"""

from __future__ import annotations

from threading import Thread
from typing import Iterator, Optional

from fastapi import FastAPI
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from agent_bridge.common.models import AnswerQuestionRequest, QueryRequest, StreamEvent
from agent_bridge.core.app import App
from agent_bridge.core.coordinator import RequestCoordinator
from agent_bridge.core.errors import AgentBridgeError, NoActiveRequestError, ProcessFailure
from agent_bridge.core.forwarder import QueueSubscriber
from agent_bridge.host.errors import error_kind, http_error


class QueryBody(BaseModel):
    prompt: str
    images: list[str] = Field(default_factory=list)
    session_id: Optional[str] = None
    include_raw: bool = False


def format_sse_event(event: StreamEvent) -> str:
    """One SSE message: event name is the envelope type, data is single-line JSON."""
    return f"event: {event.type}\ndata: {event.model_dump_json()}\n\n"


class QueryWorker(Thread):
    """Background thread running one coordinator request"""

    def __init__(self, coordinator: RequestCoordinator, request: QueryRequest, include_raw: bool = False):
        super().__init__(daemon=True)
        self.coordinator = coordinator
        self.request = request
        self.subscriber = QueueSubscriber(include_raw=include_raw)
        self.events = self.subscriber.events

    def run(self):
        try:
            text = self.coordinator.submit(self.request, self.subscriber)
            self.events.put(
                StreamEvent(
                    type="final",
                    text=text,
                    meta={
                        "state": self.coordinator.state.value,
                        "session_id": self.coordinator.current_session(),
                    },
                )
            )
        except ProcessFailure as e:
            self.events.put(
                StreamEvent(
                    type="error",
                    text=str(e),
                    meta={
                        "kind": error_kind(e),
                        "returncode": e.returncode,
                        "state": self.coordinator.state.value,
                    },
                )
            )
        except AgentBridgeError as e:
            self.events.put(StreamEvent(type="error", text=str(e), meta={"kind": error_kind(e)}))
        finally:
            self.events.put(None)


def create_app(coordinator: Optional[RequestCoordinator] = None) -> FastAPI:
    if coordinator is None:
        coordinator = App().coordinator

    app = FastAPI(title="Agent Bridge Host", version="0.1.0")
    app.state.coordinator = coordinator

    @app.get("/health")
    def health() -> dict:
        return {"ok": True}

    @app.get("/v1/session")
    def get_session() -> dict:
        return {"session_id": coordinator.current_session()}

    @app.delete("/v1/session")
    def clear_session() -> dict:
        coordinator.reset_session()
        return {"ok": True}

    @app.post("/v1/query")
    def run_query(body: QueryBody) -> StreamingResponse:
        request = QueryRequest(prompt=body.prompt, images=body.images, session_id=body.session_id)
        worker = QueryWorker(coordinator, request, include_raw=body.include_raw)
        worker.start()

        def _gen() -> Iterator[bytes]:
            while True:
                event = worker.events.get()
                if event is None:
                    return
                yield format_sse_event(event).encode("utf-8")

        return StreamingResponse(_gen(), media_type="text/event-stream")

    @app.post("/v1/query/answer")
    def answer_question(body: AnswerQuestionRequest) -> dict:
        try:
            coordinator.answer_question(body)
        except NoActiveRequestError as e:
            raise http_error(e, status_code=409)
        return {"ok": True}

    @app.post("/v1/query/cancel")
    def cancel_query() -> dict:
        return {"ok": True, "cancelled": coordinator.cancel()}

    return app
