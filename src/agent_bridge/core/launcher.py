"""Spawns one agent process per request."""
from __future__ import annotations

import logging
import subprocess
import sys
from dataclasses import dataclass
from threading import Thread
from typing import Optional

from agent_bridge.common.models import QueryRequest
from agent_bridge.core.agents.base_agent import BaseAgent
from agent_bridge.core.errors import LaunchError, NoActiveRequestError
from agent_bridge.core.state import CancellationHandle, CancellationSlot

logger = logging.getLogger(__name__)


@dataclass
class LaunchedProcess:
    process: subprocess.Popen
    handle: CancellationHandle


class ProcessLauncher:
    """Builds the invocation for a request and starts the child with three pipes."""

    def __init__(
        self,
        agent: BaseAgent,
        slot: CancellationSlot,
        cwd: Optional[str] = None,
    ) -> None:
        self.agent = agent
        self.slot = slot
        self.cwd = cwd

    def _popen_kwargs(self) -> dict:
        popen_kwargs = {
            "stdin": subprocess.PIPE,
            "stdout": subprocess.PIPE,
            "stderr": subprocess.PIPE,
            "shell": False,
            "cwd": self.cwd,
        }
        if sys.platform == "win32":
            startupinfo = subprocess.STARTUPINFO()
            startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW
            startupinfo.wShowWindow = 0  # SW_HIDE
            popen_kwargs["startupinfo"] = startupinfo
            popen_kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW
        return popen_kwargs

    def launch(self, request: QueryRequest) -> LaunchedProcess:
        """
        Spawn the agent for ``request`` and make it the current request

        Raises:
            LaunchError: the executable is missing or cannot be started.
                Nothing is installed in the slot in that case.
        """
        cmd = self.agent.build_command(request)
        logger.info(
            "Spawning %s (session=%s)", self.agent.name, request.session_id or "-"
        )
        logger.debug("Command: %s", cmd)
        try:
            process = subprocess.Popen(cmd, **self._popen_kwargs())
        except OSError as e:
            # FileNotFoundError, PermissionError, bad cwd, ...
            logger.error("Failed to spawn %s: %s", self.agent.binary, e)
            raise LaunchError(self.agent.binary, str(e)) from e

        handle = CancellationHandle(process)
        self.slot.install(handle)
        logger.info("%s spawned with pid %s", self.agent.name, process.pid)
        return LaunchedProcess(process=process, handle=handle)

    def send_initial_input(self, launched: LaunchedProcess, request: QueryRequest) -> Optional[Thread]:
        """
        Write the request payload to the child on a background thread

        Call this only once the output readers run: a child that writes a lot
        before reading stdin would otherwise block on a full pipe while we
        block on its stdin.
        """
        payload = self.agent.initial_input(request)
        if payload is None:
            return None
        writer = Thread(
            target=self._write_initial_input,
            args=(launched.handle, payload),
            name=f"agent-stdin-{launched.process.pid}",
            daemon=True,
        )
        writer.start()
        return writer

    def _write_initial_input(self, handle: CancellationHandle, payload: dict) -> None:
        try:
            handle.write_line(payload)
        except NoActiveRequestError as e:
            # The exit status will tell the caller what happened.
            logger.warning("Could not send request to pid %s: %s", handle.pid, e)
