"""Session and cancellation state shared between requests.

Both cells are owned by a single ``RequestCoordinator``. Locks protect only the
swap of the cell contents; pipe I/O and process waits happen outside them.
"""
from __future__ import annotations

import json
import logging
import subprocess
from threading import Lock
from typing import Any, Optional

from agent_bridge.core.errors import NoActiveRequestError

logger = logging.getLogger(__name__)


class SessionStore:
    """Holds the last session id reported by the agent."""

    def __init__(self, session_id: Optional[str] = None) -> None:
        self._lock = Lock()
        self._session_id = session_id

    def read(self) -> Optional[str]:
        with self._lock:
            return self._session_id

    def set(self, session_id: Optional[str]) -> None:
        with self._lock:
            self._session_id = session_id

    def clear(self) -> None:
        with self._lock:
            self._session_id = None


class CancellationHandle:
    """Owns the writable stdin of one agent process.

    Closing it is the cancellation signal: the child sees end-of-input and is
    expected to exit on its own. The lock only guards the handle's flags;
    writes to the pipe happen outside it. A close that arrives while a write
    is blocked on the pipe is carried out by that writer once it returns.
    """

    def __init__(self, process: subprocess.Popen) -> None:
        self.process = process
        self._lock = Lock()
        self._closed = False
        self._writers = 0
        self._close_pending = False
        self.cancelled = False

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def write_line(self, payload: dict[str, Any]) -> None:
        """Send one JSON line to the child."""
        data = (json.dumps(payload, ensure_ascii=False) + "\n").encode("utf-8")
        with self._lock:
            stdin = self.process.stdin
            if self._closed or stdin is None:
                raise NoActiveRequestError("Agent input is already closed")
            self._writers += 1
        try:
            stdin.write(data)
            stdin.flush()
        except (BrokenPipeError, ValueError) as e:
            raise NoActiveRequestError(f"Agent input is not writable: {e}") from e
        finally:
            with self._lock:
                self._writers -= 1
                close_now = self._close_pending and self._writers == 0
                if close_now:
                    self._close_pending = False
            if close_now:
                self._close_stdin()

    def close(self, cancelled: bool = False) -> None:
        """Close stdin. Safe to call more than once; never waits on a write."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if cancelled:
                self.cancelled = True
            if self._writers:
                self._close_pending = True
                return
        self._close_stdin()

    def _close_stdin(self) -> None:
        stdin = self.process.stdin
        if stdin is None:
            return
        try:
            stdin.close()
        except BrokenPipeError:
            # Child already gone; flushing buffered input failed.
            logger.debug("stdin of pid %s was already broken", self.pid)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the child to exit. Returns False on timeout."""
        try:
            self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return False
        return True


class CancellationSlot:
    """Tracks the handle of the single current request."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._handle: Optional[CancellationHandle] = None

    def current(self) -> Optional[CancellationHandle]:
        with self._lock:
            return self._handle

    def install(self, handle: CancellationHandle) -> Optional[CancellationHandle]:
        """Make ``handle`` current; the displaced handle is closed and returned."""
        with self._lock:
            previous, self._handle = self._handle, handle
        if previous is not None and previous is not handle:
            previous.close(cancelled=True)
            return previous
        return None

    def release(self) -> Optional[CancellationHandle]:
        """Remove and close the current handle, if any."""
        with self._lock:
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.close(cancelled=True)
        return handle

    def discard(self, handle: CancellationHandle) -> None:
        """Remove ``handle`` if it is still current, closing it."""
        with self._lock:
            if self._handle is handle:
                self._handle = None
        handle.close()
