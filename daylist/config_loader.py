"""
Configuration Loader - application settings from YAML plus environment overrides.

Playlist specs live in their own file (see daylist.playlist.config); this
module only covers server access, batch settings and logging.
"""
import os
from typing import Any, Optional

import yaml


class Config:
    """Configuration manager for daylist"""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = config_path
        self.config = self._load_config()
        self._validate_config()

    def _load_config(self) -> dict:
        """Load configuration from YAML file"""
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {self.config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"{self.config_path} must contain a mapping")
        return data

    def _validate_config(self):
        """Subsonic credentials must be set in the file or the environment"""
        for key, value in (
            ("url", self.subsonic_url),
            ("username", self.subsonic_username),
            ("password", self.subsonic_password),
        ):
            if not value or str(value).startswith("YOUR_"):
                raise ValueError(f"Please set subsonic.{key} in {self.config_path}")

        if self.fetch_size < 1:
            raise ValueError(f"playlists.fetch_size must be >= 1, got {self.fetch_size}")
        if self.max_workers < 1:
            raise ValueError(f"playlists.max_workers must be >= 1, got {self.max_workers}")

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get configuration value

        Args:
            section: Configuration section
            key: Configuration key
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        values = self.config.get(section)
        if not isinstance(values, dict):
            return default
        return values.get(key, default)

    @property
    def subsonic_url(self) -> str:
        """Server base URL (SUBSONIC_URL overrides)"""
        return os.getenv("SUBSONIC_URL") or self.get("subsonic", "url", "")

    @property
    def subsonic_username(self) -> str:
        """Username (SUBSONIC_USER overrides)"""
        return os.getenv("SUBSONIC_USER") or self.get("subsonic", "username", "")

    @property
    def subsonic_password(self) -> str:
        """Password (SUBSONIC_PASSWORD overrides)"""
        return os.getenv("SUBSONIC_PASSWORD") or self.get("subsonic", "password", "")

    @property
    def subsonic_verify_ssl(self) -> bool:
        return bool(self.get("subsonic", "verify_ssl", True))

    @property
    def subsonic_timeout(self) -> int:
        return int(self.get("subsonic", "timeout", 15))

    @property
    def playlists_path(self) -> str:
        """Path of the playlist spec file"""
        return self.get("playlists", "config_path", "playlists.json")

    @property
    def fetch_size(self) -> int:
        """Number of random candidate songs to fetch"""
        return int(self.get("playlists", "fetch_size", 500))

    @property
    def random_seed(self) -> Optional[int]:
        seed = self.get("playlists", "random_seed")
        return None if seed is None else int(seed)

    @property
    def max_workers(self) -> int:
        return int(self.get("playlists", "max_workers", 1))

    @property
    def log_level(self) -> str:
        return str(self.get("logging", "level", "INFO")).upper()

    @property
    def log_file(self) -> Optional[str]:
        return self.get("logging", "file")
