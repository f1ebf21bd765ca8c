"""Error kinds reported by the host.

Every failure reaches the client with a short ``kind`` string, either in the
``meta`` of an SSE ``error`` event or in the JSON body of an HTTP error.
"""
from __future__ import annotations

from fastapi import HTTPException

from agent_bridge.core.errors import (
    AgentBridgeError,
    LaunchError,
    NoActiveRequestError,
    ProcessFailure,
)

_KINDS = (
    (LaunchError, "launch_error"),
    (ProcessFailure, "process_failure"),
    (NoActiveRequestError, "no_active_query"),
)


def error_kind(exc: AgentBridgeError) -> str:
    for cls, kind in _KINDS:
        if isinstance(exc, cls):
            return kind
    return "agent_error"


def http_error(exc: AgentBridgeError, status_code: int) -> HTTPException:
    """Wrap ``exc`` as an HTTPException whose detail is ``{kind, message}``."""
    return HTTPException(
        status_code=status_code,
        detail={"kind": error_kind(exc), "message": str(exc)},
    )
