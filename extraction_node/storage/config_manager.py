"""
Manages loading and validation of the node configuration from the environment.
"""

import logging
import os
import socket
from typing import Any, Mapping

from pydantic import ValidationError

from extraction_node.exceptions import ConfigurationError
from extraction_node.models.config import NodeConfig

log = logging.getLogger(__name__)

FLY_BANDWIDTH_LIMIT_GB = 100

# Environment variable -> config field
ENV_KEYS = {
    "HOST": "host",
    "PORT": "port",
    "COORDINATOR_URL": "coordinator_url",
    "NODE_NAME": "node_name",
    "NODE_TYPE": "node_type",
    "REGION": "region",
    "BANDWIDTH_LIMIT_GB": "bandwidth_limit_gb",
    "BASE_URL": "base_url",
    "HEARTBEAT_INTERVAL": "heartbeat_interval",
}


class ConfigManager:
    """Handles all operations related to the node's environment configuration."""

    def __init__(self, environ: Mapping[str, str] | None = None):
        self._environ = os.environ if environ is None else environ

    @property
    def is_fly(self) -> bool:
        """Whether the node runs as a Fly.io machine."""
        return bool(self._environ.get("FLY_APP_NAME"))

    def load_config(self, cli_options: dict[str, Any] | None = None) -> NodeConfig:
        """
        Loads configuration from the environment, applies CLI overrides, and
        validates it.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated NodeConfig object.

        Raises:
            ConfigurationError: If validation fails.
        """
        config_data = {**self._platform_defaults(), **self._get_config_as_dict()}

        if cli_options:
            config_data.update(
                {k: v for k, v in cli_options.items() if v is not None}
            )

        try:
            return NodeConfig(**config_data, is_fly=self.is_fly)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the recognised environment variables into a dictionary."""
        return {
            field: self._environ[name]
            for name, field in ENV_KEYS.items()
            if self._environ.get(name, "") != ""
        }

    def _platform_defaults(self) -> dict[str, Any]:
        """Derives defaults from the hosting platform."""
        if self.is_fly:
            app_name = self._environ["FLY_APP_NAME"]
            fly_region = self._environ.get("FLY_REGION", "")
            log.debug(f"Detected Fly.io app '{app_name}' in region '{fly_region}'")
            return {
                "node_name": f"fly-{fly_region or 'unknown'}",
                "node_type": "fly",
                "region": fly_region,
                "bandwidth_limit_gb": FLY_BANDWIDTH_LIMIT_GB,
                "base_url": f"https://{app_name}.fly.dev",
            }

        return {
            "node_name": f"node-{socket.gethostname()}",
            "node_type": "residential",
        }
