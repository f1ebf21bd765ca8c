"""Delivers agent output to subscribers while the process runs."""
from __future__ import annotations

import logging
import queue
import subprocess
from collections import deque
from threading import Lock, Thread
from typing import Callable, Iterator, Optional

from agent_bridge.common.models import (
    ProtocolEvent,
    ResultEvent,
    StreamErrorEvent,
    StreamEvent,
)
from agent_bridge.core.errors import StreamReadError
from agent_bridge.core.protocol import iter_events

logger = logging.getLogger(__name__)
stderr_logger = logging.getLogger("agent_bridge.stderr")

_EOF = object()


class StreamSubscriber:
    """Receives output of the current request. All hooks are optional."""

    def on_event(self, event: ProtocolEvent) -> None:
        pass

    def on_raw_line(self, line: str) -> None:
        pass

    def on_diagnostic(self, line: str) -> None:
        pass


class CallbackSubscriber(StreamSubscriber):
    """Subscriber built from plain callables."""

    def __init__(
        self,
        on_event: Optional[Callable[[ProtocolEvent], None]] = None,
        on_raw_line: Optional[Callable[[str], None]] = None,
        on_diagnostic: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._on_event = on_event
        self._on_raw_line = on_raw_line
        self._on_diagnostic = on_diagnostic

    def on_event(self, event: ProtocolEvent) -> None:
        if self._on_event:
            self._on_event(event)

    def on_raw_line(self, line: str) -> None:
        if self._on_raw_line:
            self._on_raw_line(line)

    def on_diagnostic(self, line: str) -> None:
        if self._on_diagnostic:
            self._on_diagnostic(line)


class QueueSubscriber(StreamSubscriber):
    """Pushes StreamEvent envelopes onto a queue for another thread to send."""

    def __init__(self, events: Optional[queue.Queue] = None, include_raw: bool = False) -> None:
        self.events: queue.Queue = events if events is not None else queue.Queue()
        self.include_raw = include_raw

    def on_event(self, event: ProtocolEvent) -> None:
        self.events.put(StreamEvent(type="event", meta=event.model_dump()))

    def on_raw_line(self, line: str) -> None:
        if self.include_raw:
            self.events.put(StreamEvent(type="raw", text=line))

    def on_diagnostic(self, line: str) -> None:
        self.events.put(StreamEvent(type="diagnostic", text=line))


class StreamForwarder:
    """Runs the stdout and stderr readers of one agent process.

    stdout is parsed on its own thread and handed over through an ordered
    queue; ``forward()`` drains that queue on the caller's thread, notifying
    the subscriber per item. stderr is drained on a second thread straight
    into logging and the subscriber's diagnostic hook.
    """

    def __init__(
        self,
        process: subprocess.Popen,
        subscriber: Optional[StreamSubscriber] = None,
        tail_lines: int = 50,
    ) -> None:
        self.process = process
        self.subscriber = subscriber or StreamSubscriber()
        self._queue: queue.Queue = queue.Queue()
        self._tail: deque[str] = deque(maxlen=tail_lines)
        self._tail_lock = Lock()
        self._primary = Thread(target=self._pump_primary, name=f"agent-stdout-{process.pid}", daemon=True)
        self._diagnostic = Thread(target=self._drain_diagnostic, name=f"agent-stderr-{process.pid}", daemon=True)

    def start(self) -> None:
        self._primary.start()
        self._diagnostic.start()

    def _decoded_lines(self, stdout) -> Iterator[str]:
        for raw in iter(stdout.readline, b""):
            try:
                yield raw.decode("utf-8")
            except UnicodeDecodeError as e:
                error = StreamReadError(f"Read error: {e}")
                self._queue.put((None, StreamErrorEvent(message=str(error))))

    def _pump_primary(self) -> None:
        try:
            for raw_line, event in iter_events(self._decoded_lines(self.process.stdout)):
                self._queue.put((raw_line, event))
        except (OSError, ValueError) as e:
            error = StreamReadError(f"Read error: {e}")
            logger.warning("stdout of pid %s: %s", self.process.pid, error)
            self._queue.put((None, StreamErrorEvent(message=str(error))))
        finally:
            self._queue.put(_EOF)

    def _drain_diagnostic(self) -> None:
        stderr = self.process.stderr
        try:
            for raw in iter(stderr.readline, b""):
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                with self._tail_lock:
                    self._tail.append(line)
                stderr_logger.debug("[%s] %s", self.process.pid, line)
                try:
                    self.subscriber.on_diagnostic(line)
                except Exception:
                    logger.debug("Diagnostic sink failed", exc_info=True)
        except (OSError, ValueError) as e:
            logger.debug("stderr of pid %s closed: %s", self.process.pid, e)

    def _notify(self, raw_line: Optional[str], event: ProtocolEvent) -> None:
        try:
            if raw_line is not None:
                self.subscriber.on_raw_line(raw_line)
            # A result without subtype only updates the final text.
            if isinstance(event, ResultEvent) and event.subtype is None:
                return
            self.subscriber.on_event(event)
        except Exception:
            logger.warning("Subscriber failed on %s event", event.type, exc_info=True)

    def forward(self) -> Iterator[ProtocolEvent]:
        """Yield decoded events in arrival order until stdout reaches EOF."""
        while True:
            item = self._queue.get()
            if item is _EOF:
                return
            raw_line, event = item
            self._notify(raw_line, event)
            yield event

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for both readers to finish."""
        self._primary.join(timeout)
        self._diagnostic.join(timeout)

    def diagnostics(self) -> str:
        """Last captured stderr lines."""
        with self._tail_lock:
            lines = list(self._tail)
        return "\n".join(lines)
