"""Drive a streaming agent CLI: one process per request, one session across them."""

from agent_bridge.core.coordinator import RequestCoordinator, RequestState
from agent_bridge.core.errors import LaunchError, ProcessFailure

__all__ = ["RequestCoordinator", "RequestState", "LaunchError", "ProcessFailure"]
