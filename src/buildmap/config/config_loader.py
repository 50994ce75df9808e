"""
Configuration loader for the build map pipeline.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..core.exceptions import ConfigError


logger = logging.getLogger(__name__)


DEFAULT_PLATFORMS = [
    "Android",
    "Arm",
    "Linux",
    "Linux_x64",
    "Mac",
    "Mac_Arm",
    "Win",
    "Win_x64",
]

DEFAULT_DB_FILENAME = "chromium-data.sqlite"
DEFAULT_EXPORT_FILENAME = "chromium-data.json"
DEFAULT_DATA_DIR = "data"


class BuildMapConfig:
    """
    Configuration for the build map pipeline.

    Loads a YAML configuration file layered over the built-in defaults, then
    applies environment variable overrides.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)
        """
        self.config_path = Path(config_path) if config_path else None
        self.config = self._default_config()
        if self.config_path:
            self._merge(self.config, self._load_config())
        self._apply_env_overrides()
        self._validate()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise ConfigError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(f"Config root must be a mapping: {self.config_path}")
        return config

    def _default_config(self) -> Dict[str, Any]:
        """Return default configuration."""
        return {
            "platforms": list(DEFAULT_PLATFORMS),
            "remote": {
                "bucket": "chromium-browser-snapshots",
                "storage_api_url": "https://www.googleapis.com/storage/v1",
                "download_api_url": "https://www.googleapis.com/download/storage/v1",
                "milestones_url": "https://chromiumdash.appspot.com/fetch_milestones",
            },
            "http": {
                "timeout": 30,
                "max_retries": 3,
                "rate_limit_delay": 0.0,
                "user_agent": None,
            },
            "state": {
                "backend": "sqlite",
                "db_path": f"{DEFAULT_DATA_DIR}/{DEFAULT_DB_FILENAME}",
                "sqlserver": {
                    "host": "localhost",
                    "port": 1433,
                    "database": "BuildMap",
                    "user": "sa",
                    "schema": "buildmap",
                    "driver": "ODBC Driver 18 for SQL Server",
                },
            },
            "export": {
                "path": f"{DEFAULT_DATA_DIR}/{DEFAULT_EXPORT_FILENAME}",
                "indent": 2,
            },
            "runner": {
                "max_workers": 1,  # 1 = sequential
                "fail_fast": False,
            },
        }

    def _merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> None:
        """Recursively merge override into base (lists and scalars replace)."""
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                self._merge(base[key], value)
            else:
                base[key] = copy.deepcopy(value)

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        data_dir = os.environ.get("BUILDMAP_DATA_DIR")
        if data_dir:
            self.config["state"]["db_path"] = str(Path(data_dir) / DEFAULT_DB_FILENAME)
            self.config["export"]["path"] = str(Path(data_dir) / DEFAULT_EXPORT_FILENAME)

        backend = os.environ.get("BUILDMAP_DB_BACKEND")
        if backend:
            self.config["state"]["backend"] = backend.lower()

        platforms = os.environ.get("BUILDMAP_PLATFORMS")
        if platforms:
            self.config["platforms"] = [p.strip() for p in platforms.split(",") if p.strip()]

        max_workers = os.environ.get("BUILDMAP_MAX_WORKERS")
        if max_workers:
            try:
                self.config["runner"]["max_workers"] = int(max_workers)
            except ValueError:
                raise ConfigError(f"BUILDMAP_MAX_WORKERS must be an integer, got {max_workers!r}")

    def _validate(self) -> None:
        platforms = self.config.get("platforms")
        if not isinstance(platforms, list) or not platforms:
            raise ConfigError("At least one platform must be configured")
        if not all(isinstance(p, str) and p and "/" not in p for p in platforms):
            raise ConfigError(f"Platforms must be non-empty names without '/': {platforms}")

        backend = self.get("state.backend")
        if backend not in ("sqlite", "sqlserver"):
            raise ConfigError(f"Unknown state backend: {backend}")

        max_workers = self.get("runner.max_workers", 1)
        if not isinstance(max_workers, int) or max_workers < 1:
            raise ConfigError(f"runner.max_workers must be a positive integer, got {max_workers!r}")

    def get_platforms(self) -> List[str]:
        """Get the platforms to sync, de-duplicated in configured order."""
        return list(dict.fromkeys(self.config["platforms"]))

    def get_remote_config(self) -> Dict[str, Any]:
        return self.config.get("remote", {})

    def get_http_config(self) -> Dict[str, Any]:
        return self.config.get("http", {})

    def get_state_config(self) -> Dict[str, Any]:
        """Get state store configuration."""
        return self.config.get("state", {})

    def get_export_config(self) -> Dict[str, Any]:
        return self.config.get("export", {})

    def get_runner_config(self) -> Dict[str, Any]:
        """Get runner configuration."""
        return self.config.get("runner", {})

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        keys = key.split(".")
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default
