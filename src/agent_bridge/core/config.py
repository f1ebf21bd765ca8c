"""Configuration and settings storage"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def get_config_dir() -> Path:
    """Return the settings directory (``AGENT_BRIDGE_HOME`` or ~/.agent_bridge)."""
    override = os.environ.get("AGENT_BRIDGE_HOME")
    return Path(override) if override else Path.home() / ".agent_bridge"


class Config:
    """Application configuration manager"""

    def __init__(
        self,
        config_file: str = "agent_bridge_config.json",
        config_dir: Optional[Path] = None,
    ):
        """
        Initialize configuration

        Args:
            config_file: Name of the config file
            config_dir: Directory holding it (defaults to get_config_dir())
        """
        self.config_dir = Path(config_dir) if config_dir else get_config_dir()
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file = self.config_dir / config_file
        self._config: Dict[str, Any] = {}
        self.load()

    def load(self):
        """Load configuration from file"""
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    loaded = json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                logger.error("Error loading config %s: %s", self.config_file, e)
                loaded = {}
            if not isinstance(loaded, dict):
                logger.error("Ignoring config %s: not a JSON object", self.config_file)
                loaded = {}
            # Keys missing from older files fall back to defaults.
            self._config = {**self._default_config(), **loaded}
        else:
            self._config = self._default_config()
            self.save()

    def save(self):
        """Save configuration to file"""
        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self._config, f, indent=2)
        except OSError as e:
            logger.error("Error saving config %s: %s", self.config_file, e)

    def _default_config(self) -> Dict[str, Any]:
        """Return default configuration"""
        return {
            "agent": "claude",
            "claude_binary": None,
            "node_binary": None,
            "sidecar_script": None,
            "cwd": None,
            "supersede_timeout": 5.0,
            "diagnostic_tail_lines": 50,
            "log_level": "INFO",
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value"""
        return self._config.get(key, default)

    def set(self, key: str, value: Any):
        """Set a configuration value"""
        self._config[key] = value
        self.save()

    def __getitem__(self, key: str) -> Any:
        """Allow dict-like access"""
        return self._config.get(key)

    def __setitem__(self, key: str, value: Any):
        """Allow dict-like assignment"""
        self.set(key, value)
