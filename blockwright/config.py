"""
Configuration management for Blockwright.

This module handles loading and accessing configuration values from config.yaml.
It provides a centralized place for storage, timeout and composition limits so
behavior can change without touching code.
"""

import yaml
from pathlib import Path
from typing import Any, Dict
import logging


class ConfigManager:
    """
    Manages configuration loading and access for Blockwright.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        try:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._config = yaml.safe_load(f) or {}

            logging.info(f"Configuration loaded from {self.config_path}")

        except (OSError, yaml.YAMLError) as e:
            logging.warning(f"Failed to load configuration: {e}")
            # Fall back to default configuration
            self._config = self._get_default_config()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return {
            "database": {
                "filename": "blockwright.db"
            },
            "gateway": {
                "timeout": 10.0
            },
            "composition": {
                "max_blocks_per_document": 50,
                "overlap_policy": "queue"
            },
            "shared_blocks": {
                "default_decision": "cancel"
            },
            "paths": {
                "log_file": "blockwright.log"
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "gateway.timeout")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("gateway.timeout")  # Returns 10.0
            config.get("composition.overlap_policy")  # Returns "queue"
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.

        Args:
            section: Name of the configuration section

        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section, {})

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    # Convenience properties for commonly used values

    @property
    def database_filename(self) -> str:
        """Get database filename."""
        return self.get("database.filename", "blockwright.db")

    @property
    def gateway_timeout(self) -> float:
        """Get the timeout applied to every persistence gateway call."""
        return float(self.get("gateway.timeout", 10.0))

    @property
    def max_blocks_per_document(self) -> int:
        """Get the maximum number of blocks a single document may hold."""
        return int(self.get("composition.max_blocks_per_document", 50))

    @property
    def overlap_policy(self) -> str:
        """Get how overlapping operations on one document are handled ("queue" or "reject")."""
        return self.get("composition.overlap_policy", "queue")

    @property
    def shared_block_default_decision(self) -> str:
        """Get the decision used for shared-block edits when no callback is wired in."""
        return self.get("shared_blocks.default_decision", "cancel")

    @property
    def log_filename(self) -> str:
        """Get log file name."""
        return self.get("paths.log_file", "blockwright.log")


# Global configuration instance
config = ConfigManager()


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.

    Returns:
        The global ConfigManager instance
    """
    return config
