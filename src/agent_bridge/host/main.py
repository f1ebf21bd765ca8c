"""agent_bridge.host.main

Local Agent Host daemon.

Goal: own the agent processes and provide a stable localhost API for the UI.

Run:
  python -m agent_bridge
  # or: agent-bridge-host
"""

from __future__ import annotations

import os

import uvicorn

from agent_bridge.core.app import App
from agent_bridge.core.logging_utils import configure_logging
from agent_bridge.host.api import create_app


def main() -> None:
    host = os.environ.get("AGENT_BRIDGE_HOST", "127.0.0.1")
    port = int(os.environ.get("AGENT_BRIDGE_PORT", "17123"))

    core_app = App()
    configure_logging(core_app.config.get("log_level", "INFO"))
    app = create_app(core_app.coordinator)
    try:
        uvicorn.run(app, host=host, port=port, log_level="info")
    finally:
        core_app.shutdown()


if __name__ == "__main__":
    main()
