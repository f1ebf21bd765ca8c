"""Claude CLI agent implementation."""
from __future__ import annotations

import logging
import shutil
from typing import Any, Optional

from agent_bridge.common.models import QueryRequest
from agent_bridge.core.agents.base_agent import BaseAgent

logger = logging.getLogger(__name__)


class ClaudeAgent(BaseAgent):
    """Agent wrapper for Anthropic Claude CLI in stream-json print mode."""

    close_input_on_result = True

    def __init__(self, binary: Optional[str] = None) -> None:
        # A missing CLI surfaces as LaunchError on submit, not at startup.
        self._binary = (
            binary or shutil.which("claude.cmd") or shutil.which("claude") or "claude"
        )

    @property
    def name(self) -> str:
        """Agent name."""
        return "claude"

    @property
    def binary(self) -> str:
        return self._binary

    def build_command(self, request: QueryRequest) -> list[str]:
        cmd = [
            self._binary,
            "-p",
            "--input-format",
            "stream-json",
            "--output-format",
            "stream-json",
            "--verbose",  # Required for stream-json with -p
        ]
        if request.session_id:
            cmd += ["--resume", request.session_id]
        return cmd

    def initial_input(self, request: QueryRequest) -> Optional[dict[str, Any]]:
        """Prompt as a single stream-json user message."""
        if request.images:
            # Text-only backend for now.
            logger.warning("claude backend ignores %d image(s)", len(request.images))
        return {
            "type": "user",
            "message": {
                "role": "user",
                "content": [{"type": "text", "text": request.prompt}],
            },
        }
