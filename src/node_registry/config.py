"""
Configuration for the node registry CLI.

Resolution order, lowest to highest priority:
    built-in defaults → YAML config file → environment → command-line flags

YAML config file layout:
    registry:
      url: http://127.0.0.1:8080
      registry_file: ./nodes.yaml
      auth_token: ...
"""

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .local_registry import DEFAULT_REGISTRY_FILE

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "http://127.0.0.1:8080"

REGISTRY_URL_ENV = "NODE_REGISTRY_URL"
REGISTRY_TOKEN_ENV = "NODE_REGISTRY_TOKEN"
REGISTRY_FILE_ENV = "NODE_REGISTRY_FILE"
REGISTRY_CONFIG_ENV = "NODE_REGISTRY_CONFIG"


@dataclass(frozen=True)
class RegistryConfig:
    """Where the registry lives and how to authenticate to it."""

    url: str = DEFAULT_REGISTRY_URL
    registry_file: str = DEFAULT_REGISTRY_FILE

    # Bearer token; None means unauthenticated requests
    auth_token: Optional[str] = None

    @staticmethod
    def _load_file(config_path: Optional[str]) -> Dict[str, Any]:
        """Read the ``registry`` section of a YAML config file, if any."""
        if config_path is None or not Path(config_path).exists():
            return {}

        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config from {config_path}: {e}, using defaults")
            return {}

        if not file_config or "registry" not in file_config:
            return {}

        logger.debug(f"Loaded config from {config_path}")
        return dict(file_config["registry"] or {})

    @staticmethod
    def _getenv(name: str, default: Optional[str]) -> Optional[str]:
        """Read an environment variable, treating an empty value as unset."""
        return os.getenv(name) or default

    @classmethod
    def from_env(cls, config_path: Optional[str] = None) -> "RegistryConfig":
        """Load configuration from an optional YAML file and environment variables."""
        if config_path is None:
            config_path = os.getenv(REGISTRY_CONFIG_ENV) or None
        file_config = cls._load_file(config_path)

        return cls(
            url=cls._getenv(REGISTRY_URL_ENV, file_config.get("url", DEFAULT_REGISTRY_URL)),
            registry_file=cls._getenv(
                REGISTRY_FILE_ENV, file_config.get("registry_file", DEFAULT_REGISTRY_FILE)
            ),
            auth_token=cls._getenv(REGISTRY_TOKEN_ENV, file_config.get("auth_token")),
        )

    def with_overrides(self, **overrides: Optional[str]) -> "RegistryConfig":
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)
