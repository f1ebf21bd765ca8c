"""Error types raised by the request pipeline."""
from __future__ import annotations

from typing import Optional


class AgentBridgeError(Exception):
    """Base class for all agent bridge errors."""


class LaunchError(AgentBridgeError):
    """The agent executable could not be found or spawned. Not retryable."""

    def __init__(self, binary: str, reason: str) -> None:
        self.binary = binary
        self.reason = reason
        super().__init__(
            f"Failed to launch {binary}: {reason}. "
            f"Make sure `{binary}` is installed and on PATH."
        )


class StreamReadError(AgentBridgeError):
    """Reading the child's output failed mid-stream."""


class DecodeError(AgentBridgeError):
    """A protocol line is not valid JSON."""

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        super().__init__(f"Cannot decode protocol line: {reason}")


class ProcessFailure(AgentBridgeError):
    """The agent process exited with a non-zero status."""

    def __init__(self, returncode: Optional[int], diagnostics: str = "") -> None:
        self.returncode = returncode
        self.diagnostics = diagnostics
        message = f"Agent exited with status: {returncode}"
        if diagnostics:
            message = f"{message}\n{diagnostics}"
        super().__init__(message)


class NoActiveRequestError(AgentBridgeError):
    """There is no running request to send input to."""
