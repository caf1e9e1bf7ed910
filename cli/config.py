"""Configuration management for the chunkey CLI."""

import json
import os
import shutil
from pathlib import Path
from typing import List

from common.constants import CHUNK_SIZE_BYTES, RELAY_TIMEOUT_SECONDS
from common.exceptions import ConfigError
from common.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / '.chunkey' / 'config.json'


def _env_relays() -> List[str]:
    raw = os.environ.get("CHUNKEY_RELAYS", "")
    return [url.strip() for url in raw.split(",") if url.strip()]


class Config:
    """Manages CLI configuration stored in a JSON file."""

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.chunkey/config.json)
        """
        self.config_path = Path(config_path)
        self.data = self._load()

    @staticmethod
    def defaults() -> dict:
        """
        Raises:
            ConfigError: If CHUNKEY_CHUNK_SIZE or CHUNKEY_TIMEOUT is not a number
        """
        try:
            chunk_size = int(os.environ.get("CHUNKEY_CHUNK_SIZE", CHUNK_SIZE_BYTES))
        except ValueError as e:
            raise ConfigError(f"Invalid CHUNKEY_CHUNK_SIZE: {os.environ['CHUNKEY_CHUNK_SIZE']!r}") from e
        try:
            timeout = float(os.environ.get("CHUNKEY_TIMEOUT", RELAY_TIMEOUT_SECONDS))
        except ValueError as e:
            raise ConfigError(f"Invalid CHUNKEY_TIMEOUT: {os.environ['CHUNKEY_TIMEOUT']!r}") from e
        return {
            "relays": _env_relays(),
            "chunk_size": chunk_size,
            "timeout": timeout,
            "kind": "blob",
        }

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        A corrupted file is backed up to .json.bak and replaced by defaults.
        """
        config = self.defaults()
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot create config directory {self.config_path.parent}: {e}")
            return config

        if not self.config_path.exists():
            self._write(config)
            return config

        try:
            with open(self.config_path, 'r') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("config root must be an object")
        except (json.JSONDecodeError, ValueError, OSError) as e:
            backup_path = self.config_path.with_suffix('.json.bak')
            logger.warning(f"Config file {self.config_path} is unreadable ({e}), backing up to {backup_path}")
            try:
                shutil.copy(self.config_path, backup_path)
            except OSError as copy_error:
                logger.warning(f"Could not back up config: {copy_error}")
            return config

        config.update(data)
        return config

    def _write(self, data: dict) -> None:
        try:
            with open(self.config_path, 'w') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not write config {self.config_path}: {e}")

    def save(self) -> None:
        """Save current configuration to file."""
        self._write(self.data)

    def get_relays(self) -> List[str]:
        relays = self.data.get('relays') or []
        if isinstance(relays, str):
            relays = [relays]
        return list(relays)

    def get_chunk_size(self) -> int:
        """
        Raises:
            ConfigError: If the configured chunk size is not a positive integer
        """
        value = self.data.get('chunk_size', CHUNK_SIZE_BYTES)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError(f"Invalid chunk_size in {self.config_path}: {value!r}")
        return value

    def get_timeout(self) -> float:
        """
        Raises:
            ConfigError: If the configured timeout is not a positive number
        """
        value = self.data.get('timeout', RELAY_TIMEOUT_SECONDS)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"Invalid timeout in {self.config_path}: {value!r}")
        return float(value)

    def get_kind(self) -> str:
        return str(self.data.get('kind', 'blob'))
