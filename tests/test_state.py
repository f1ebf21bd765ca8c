import subprocess
import sys
import threading
import time

import pytest

from agent_bridge.core.errors import NoActiveRequestError
from agent_bridge.core.state import CancellationHandle, CancellationSlot, SessionStore


class _FakeHandle:
    def __init__(self, pid: int) -> None:
        self.pid = pid
        self.closed_with = []

    def close(self, cancelled: bool = False) -> None:
        self.closed_with.append(cancelled)


def _cat_process() -> subprocess.Popen:
    # Exits once stdin reaches EOF.
    return subprocess.Popen(
        [sys.executable, "-c", "import sys; sys.stdin.read()"],
        stdin=subprocess.PIPE,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )


def test_session_store_read_set_clear() -> None:
    store = SessionStore()
    assert store.read() is None
    store.set("S1")
    assert store.read() == "S1"
    store.set("S2")
    assert store.read() == "S2"
    store.clear()
    assert store.read() is None


def test_install_replaces_and_closes_previous() -> None:
    slot = CancellationSlot()
    first, second = _FakeHandle(1), _FakeHandle(2)

    assert slot.install(first) is None
    assert slot.install(second) is first

    assert first.closed_with == [True]
    assert second.closed_with == []
    assert slot.current() is second


def test_release_is_noop_when_empty() -> None:
    slot = CancellationSlot()
    assert slot.release() is None

    handle = _FakeHandle(1)
    slot.install(handle)
    assert slot.release() is handle
    assert slot.current() is None
    assert slot.release() is None
    assert handle.closed_with == [True]


def test_discard_only_clears_matching_handle() -> None:
    slot = CancellationSlot()
    old, new = _FakeHandle(1), _FakeHandle(2)
    slot.install(old)
    slot.install(new)

    slot.discard(old)
    assert slot.current() is new

    slot.discard(new)
    assert slot.current() is None
    assert new.closed_with == [False]


def test_closing_handle_lets_child_exit() -> None:
    handle = CancellationHandle(_cat_process())
    handle.write_line({"type": "query", "prompt": "hi"})

    handle.close(cancelled=True)
    handle.close()

    assert handle.wait(timeout=10)
    assert handle.closed
    assert handle.cancelled
    with pytest.raises(NoActiveRequestError):
        handle.write_line({"type": "answer-question"})


def test_wait_times_out_while_child_runs() -> None:
    handle = CancellationHandle(_cat_process())
    try:
        assert handle.wait(timeout=0.05) is False
    finally:
        handle.close()
        handle.wait(timeout=10)


def test_close_does_not_wait_for_blocked_write() -> None:
    # Starts reading only after a second, so a large write blocks meanwhile.
    process = subprocess.Popen(
        [sys.executable, "-c", "import sys, time; time.sleep(1); sys.stdin.buffer.read()"],
        stdin=subprocess.PIPE,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )
    handle = CancellationHandle(process)
    errors = []

    def write_big_line():
        try:
            handle.write_line({"type": "query", "prompt": "x" * 1048576})
        except NoActiveRequestError as e:
            errors.append(e)

    writer = threading.Thread(target=write_big_line, daemon=True)
    writer.start()
    time.sleep(0.2)

    started = time.monotonic()
    handle.close(cancelled=True)
    assert time.monotonic() - started < 0.5
    assert handle.closed and handle.cancelled
    with pytest.raises(NoActiveRequestError):
        handle.write_line({"type": "answer-question"})

    writer.join(10)
    assert not writer.is_alive()
    assert errors == []
    # The deferred close reaches the child once the write is done.
    assert handle.wait(timeout=10)
