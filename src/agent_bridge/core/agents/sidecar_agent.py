"""Node sidecar agent implementation."""
from __future__ import annotations

import shutil
from typing import Any, Optional

from agent_bridge.common.models import QueryRequest
from agent_bridge.core.agents.base_agent import BaseAgent


class SidecarAgent(BaseAgent):
    """Agent wrapper for a Node script speaking the query/answer-question protocol.

    The whole request goes to stdin as one JSON line, and stdin stays open so
    answers to agent questions can follow on the same pipe.
    """

    def __init__(self, script: str, node_binary: Optional[str] = None) -> None:
        self._script = script
        self._node = node_binary or shutil.which("node") or "node"

    @property
    def name(self) -> str:
        """Agent name."""
        return "sidecar"

    @property
    def binary(self) -> str:
        return self._node

    def build_command(self, request: QueryRequest) -> list[str]:
        del request  # Everything travels over stdin.
        return [self._node, self._script]

    def initial_input(self, request: QueryRequest) -> Optional[dict[str, Any]]:
        return request.to_wire()
