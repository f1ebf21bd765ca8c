"""Shared models between the coordinator, the agent backends and the host.

Keep these lightweight and stable; requests are written to the child process
and events are what subscribers receive.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    type: Literal["query"] = "query"
    prompt: str
    session_id: Optional[str] = None
    images: list[str] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        """Payload in the sidecar's camelCase format."""
        return {
            "type": self.type,
            "prompt": self.prompt,
            "sessionId": self.session_id,
            "images": list(self.images),
        }


class AnswerQuestionRequest(BaseModel):
    """Answer to a question the agent asked mid-run.

    ``questions`` belongs to the agent; it is echoed back untouched.
    """

    type: Literal["answer-question"] = "answer-question"
    question_id: str
    questions: Any = None
    answers: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_json(
        cls, question_id: str, questions_json: str, answers: dict[str, str]
    ) -> "AnswerQuestionRequest":
        try:
            questions = json.loads(questions_json)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid questions JSON: {e}") from e
        return cls(question_id=question_id, questions=questions, answers=answers)

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "questionId": self.question_id,
            "questions": self.questions,
            "answers": dict(self.answers),
        }


Request = Annotated[
    Union[QueryRequest, AnswerQuestionRequest], Field(discriminator="type")
]


class InitEvent(BaseModel):
    type: Literal["init"] = "init"
    session_id: str


class AssistantTextEvent(BaseModel):
    # Full text so far, not a delta.
    type: Literal["assistant_text"] = "assistant_text"
    text: str


class ResultEvent(BaseModel):
    type: Literal["result"] = "result"
    subtype: Optional[str] = None
    result: Optional[str] = None


class UnrecognizedEvent(BaseModel):
    type: Literal["unrecognized"] = "unrecognized"
    raw_line: str


class StreamErrorEvent(BaseModel):
    type: Literal["stream_error"] = "stream_error"
    message: str


ProtocolEvent = Annotated[
    Union[
        InitEvent,
        AssistantTextEvent,
        ResultEvent,
        UnrecognizedEvent,
        StreamErrorEvent,
    ],
    Field(discriminator="type"),
]


class StreamEvent(BaseModel):
    """Envelope sent to HTTP clients over server-sent events."""

    type: Literal["event", "raw", "diagnostic", "final", "error"]
    text: Optional[str] = None
    meta: dict[str, Any] = Field(default_factory=dict)
