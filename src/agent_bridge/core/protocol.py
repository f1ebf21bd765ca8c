"""JSON-lines protocol spoken by the agent on stdout.

One JSON object per line::

    {"type": "system", "session_id": "..."}                                  -> InitEvent
    {"type": "assistant", "message": {"content": [{"type": "text", ...}]}}   -> AssistantTextEvent
    {"type": "result", "subtype": "...", "result": "..."}                    -> ResultEvent

Everything else, including lines that are not JSON, becomes an
UnrecognizedEvent carrying the raw line. Blank lines produce nothing.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Iterator, Optional

from agent_bridge.common.models import (
    AssistantTextEvent,
    InitEvent,
    ProtocolEvent,
    ResultEvent,
    UnrecognizedEvent,
)
from agent_bridge.core.errors import DecodeError

logger = logging.getLogger(__name__)


def decode_line(line: str) -> Any:
    """Decode one line as JSON, raising DecodeError on malformed input."""
    try:
        return json.loads(line)
    except (json.JSONDecodeError, RecursionError) as e:
        raise DecodeError(line, str(e)) from e


def _last_text_block(message: Any) -> Optional[str]:
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, list):
        return None
    text = None
    for block in content:
        if isinstance(block, dict) and block.get("type") == "text":
            if isinstance(block.get("text"), str):
                text = block["text"]
    return text


def classify(obj: Any, raw_line: str) -> ProtocolEvent:
    """Map a decoded JSON value to a protocol event."""
    if not isinstance(obj, dict):
        return UnrecognizedEvent(raw_line=raw_line)

    kind = obj.get("type")
    if kind == "system":
        session_id = obj.get("session_id")
        if isinstance(session_id, str):
            return InitEvent(session_id=session_id)
    elif kind == "assistant":
        text = _last_text_block(obj.get("message"))
        if text is not None:
            return AssistantTextEvent(text=text)
    elif kind == "result":
        result = obj.get("result")
        subtype = obj.get("subtype")
        return ResultEvent(
            subtype=subtype if isinstance(subtype, str) else None,
            result=result if isinstance(result, str) else None,
        )
    return UnrecognizedEvent(raw_line=raw_line)


def parse_line(line: str) -> Optional[ProtocolEvent]:
    """Parse one line of agent output. Never raises on malformed input.

    Returns None for blank lines.
    """
    raw_line = line.rstrip("\r\n")
    if not raw_line.strip():
        return None
    try:
        obj = decode_line(raw_line)
    except DecodeError as e:
        logger.debug("%s; forwarding raw line", e)
        return UnrecognizedEvent(raw_line=raw_line)
    return classify(obj, raw_line)


def iter_events(lines: Iterable[str]) -> Iterator[tuple[str, ProtocolEvent]]:
    """Lazily yield ``(raw_line, event)`` for each non-blank line, in order."""
    for line in lines:
        event = parse_line(line)
        if event is None:
            continue
        yield line.rstrip("\r\n"), event
