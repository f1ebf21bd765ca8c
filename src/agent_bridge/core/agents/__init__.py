"""Agent backends"""
from agent_bridge.core.agents.base_agent import BaseAgent
from agent_bridge.core.agents.claude_agent import ClaudeAgent
from agent_bridge.core.agents.sidecar_agent import SidecarAgent

__all__ = [
    "BaseAgent",
    "ClaudeAgent",
    "SidecarAgent",
]
