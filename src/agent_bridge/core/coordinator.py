"""Runs one agent request end to end and owns the shared request state."""
from __future__ import annotations

import logging
from enum import Enum
from threading import Lock
from typing import Optional

from agent_bridge.common.models import (
    AnswerQuestionRequest,
    AssistantTextEvent,
    InitEvent,
    Request,
    ResultEvent,
)
from agent_bridge.core.errors import LaunchError, NoActiveRequestError, ProcessFailure
from agent_bridge.core.forwarder import StreamForwarder, StreamSubscriber
from agent_bridge.core.launcher import ProcessLauncher
from agent_bridge.core.state import SessionStore

logger = logging.getLogger(__name__)


class RequestState(str, Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    STREAMING = "streaming"
    COMPLETING = "completing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RequestCoordinator:
    """Control surface for agent requests.

    ``submit`` blocks the calling thread until the agent exits; ``cancel``,
    ``answer_question`` and the session methods may be called from any other
    thread meanwhile. Only the most recently submitted request is current.
    """

    def __init__(
        self,
        launcher: ProcessLauncher,
        store: Optional[SessionStore] = None,
        supersede_timeout: float = 5.0,
        diagnostic_tail_lines: int = 50,
        reader_join_timeout: float = 5.0,
    ) -> None:
        self.launcher = launcher
        self.slot = launcher.slot
        self.store = store or SessionStore()
        self.supersede_timeout = supersede_timeout
        self.diagnostic_tail_lines = diagnostic_tail_lines
        self.reader_join_timeout = reader_join_timeout
        self._state_lock = Lock()
        self._state = RequestState.IDLE
        self._generation = 0

    @property
    def state(self) -> RequestState:
        """State of the most recent request."""
        with self._state_lock:
            return self._state

    def _begin(self) -> int:
        with self._state_lock:
            self._generation += 1
            self._state = RequestState.LAUNCHING
            return self._generation

    def _set_state(self, generation: int, state: RequestState) -> None:
        with self._state_lock:
            # Superseded requests no longer report.
            if generation == self._generation:
                self._state = state

    def _supersede(self) -> None:
        previous = self.slot.release()
        if previous is None:
            return
        logger.info("Superseding running request (pid %s)", previous.pid)
        if not previous.wait(self.supersede_timeout):
            logger.warning(
                "Previous agent (pid %s) still running after %.1fs; continuing",
                previous.pid,
                self.supersede_timeout,
            )

    def submit(
        self,
        request: Request,
        subscriber: Optional[StreamSubscriber] = None,
    ) -> str:
        """
        Run a request and return the agent's final text

        Answers are written to the running agent and return an empty string.

        Raises:
            LaunchError: the agent could not be started
            ProcessFailure: the agent exited with a non-zero status
        """
        if isinstance(request, AnswerQuestionRequest):
            self.answer_question(request)
            return ""

        self._supersede()
        generation = self._begin()
        if request.session_id is None:
            request = request.model_copy(update={"session_id": self.store.read()})

        try:
            launched = self.launcher.launch(request)
        except LaunchError:
            self._set_state(generation, RequestState.FAILED)
            raise

        forwarder = StreamForwarder(
            launched.process, subscriber, tail_lines=self.diagnostic_tail_lines
        )
        forwarder.start()
        writer = self.launcher.send_initial_input(launched, request)
        self._set_state(generation, RequestState.STREAMING)

        final_text = ""
        session_id: Optional[str] = None
        try:
            for event in forwarder.forward():
                if isinstance(event, InitEvent):
                    session_id = event.session_id
                elif isinstance(event, AssistantTextEvent):
                    final_text = event.text
                elif isinstance(event, ResultEvent):
                    if event.result is not None:
                        final_text = event.result
                    if self.launcher.agent.close_input_on_result:
                        launched.handle.close()

            # Only a cancel that arrived before end of output counts.
            cancelled = launched.handle.cancelled
            self._set_state(generation, RequestState.COMPLETING)
            returncode = launched.process.wait()
            forwarder.join(self.reader_join_timeout)
            if writer is not None:
                writer.join(self.reader_join_timeout)
        finally:
            self.slot.discard(launched.handle)

        logger.info("Agent pid %s exited with status %s", launched.process.pid, returncode)

        if returncode != 0:
            self._set_state(
                generation, RequestState.CANCELLED if cancelled else RequestState.FAILED
            )
            raise ProcessFailure(returncode, forwarder.diagnostics())

        if session_id:
            logger.info("Storing session ID: %s", session_id)
            self.store.set(session_id)
        self._set_state(
            generation, RequestState.CANCELLED if cancelled else RequestState.SUCCEEDED
        )
        return final_text

    def answer_question(self, request: AnswerQuestionRequest) -> None:
        """Send an answer to the question the running agent asked."""
        handle = self.slot.current()
        if handle is None or handle.closed:
            raise NoActiveRequestError("No active query to answer")
        handle.write_line(self.launcher.agent.encode_answer(request))
        logger.info("Answered question %s", request.question_id)

    def cancel(self) -> bool:
        """Close the current agent's input. Returns False if nothing was running."""
        handle = self.slot.release()
        if handle is None:
            return False
        logger.info("Current query cancelled (pid %s)", handle.pid)
        return True

    def reset_session(self) -> None:
        self.store.clear()
        logger.info("Session cleared")

    def current_session(self) -> Optional[str]:
        return self.store.read()

    def shutdown(self) -> None:
        self.cancel()
