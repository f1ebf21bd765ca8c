"""Main application coordinator (pure Python, no transport)"""
import logging
from typing import Optional

from agent_bridge.core.agents.base_agent import BaseAgent
from agent_bridge.core.agents.claude_agent import ClaudeAgent
from agent_bridge.core.agents.sidecar_agent import SidecarAgent
from agent_bridge.core.config import Config
from agent_bridge.core.coordinator import RequestCoordinator
from agent_bridge.core.launcher import ProcessLauncher
from agent_bridge.core.state import CancellationSlot, SessionStore

logger = logging.getLogger(__name__)


class App:
    """Wires the configured agent into a request coordinator"""

    def __init__(self, config: Optional[Config] = None):
        """Initialize application"""
        self.config = config or Config()
        self.agent: BaseAgent = self._create_agent(self.config.get("agent", "claude"))
        self.store = SessionStore()
        self.slot = CancellationSlot()
        self.launcher = ProcessLauncher(self.agent, self.slot, cwd=self.config.get("cwd"))
        self.coordinator = RequestCoordinator(
            self.launcher,
            self.store,
            supersede_timeout=float(self.config.get("supersede_timeout", 5.0)),
            diagnostic_tail_lines=int(self.config.get("diagnostic_tail_lines", 50)),
        )
        logger.info("Using %s agent (%s)", self.agent.name, self.agent.binary)

    def _create_agent(self, agent_name: str) -> BaseAgent:
        """Instantiate an agent by configured name."""
        if agent_name == "claude":
            return ClaudeAgent(self.config.get("claude_binary"))
        if agent_name == "sidecar":
            script = self.config.get("sidecar_script")
            if not script:
                raise ValueError("sidecar agent requires `sidecar_script` in config")
            return SidecarAgent(script, node_binary=self.config.get("node_binary"))
        raise ValueError(f"Unknown agent: {agent_name}")

    def shutdown(self):
        """Cancel whatever is still running"""
        self.coordinator.shutdown()
