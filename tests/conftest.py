import sys
import textwrap
from pathlib import Path

import pytest

from agent_bridge.core.agents.sidecar_agent import SidecarAgent
from agent_bridge.core.coordinator import RequestCoordinator
from agent_bridge.core.launcher import ProcessLauncher
from agent_bridge.core.state import CancellationSlot, SessionStore

# Prepended to every fake agent script.
AGENT_PRELUDE = """\
import json
import sys


def emit(obj):
    print(json.dumps(obj), flush=True)


request = json.loads(sys.stdin.readline())
"""


@pytest.fixture
def write_agent(tmp_path: Path):
    """Write a Python script that plays the agent and wrap it as a SidecarAgent."""

    def _write(body: str, name: str = "agent.py", prelude: bool = True) -> SidecarAgent:
        script = tmp_path / name
        source = textwrap.dedent(body)
        if prelude:
            source = AGENT_PRELUDE + source
        script.write_text(source, encoding="utf-8")
        return SidecarAgent(str(script), node_binary=sys.executable)

    return _write


@pytest.fixture
def make_coordinator():
    def _make(agent, **kwargs) -> RequestCoordinator:
        launcher = ProcessLauncher(agent, CancellationSlot())
        return RequestCoordinator(launcher, SessionStore(), **kwargs)

    return _make
