"""Logging setup shared by the host and embedding applications."""
from __future__ import annotations

import logging
from typing import Union

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
HANDLER_NAME = "agent_bridge"


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Install a single stream handler on the ``agent_bridge`` logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger("agent_bridge")
    root.setLevel(level)
    if not any(h.get_name() == HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.set_name(HANDLER_NAME)
        root.addHandler(handler)
