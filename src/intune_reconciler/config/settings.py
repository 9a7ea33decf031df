from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from platformdirs import user_cache_dir, user_config_dir

APP_NAME = "IntuneReconciler"
ENV_PREFIX = "INTUNE_RECONCILER_"
ENV_FILE_NAME = "settings.env"

GRAPH_BATCH_LIMIT = 20
DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com"
DEFAULT_API_VERSION = "beta"


def _config_dir() -> Path:
    path = Path(user_config_dir(APP_NAME, roaming=True))
    path.mkdir(parents=True, exist_ok=True)
    return path


def _cache_dir() -> Path:
    path = Path(user_cache_dir(APP_NAME))
    path.mkdir(parents=True, exist_ok=True)
    return path


def config_dir() -> Path:
    return _config_dir()


def cache_dir() -> Path:
    return _cache_dir()


def log_dir() -> Path:
    path = cache_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _env_file_path(explicit: Path | None) -> Path:
    if explicit is not None:
        return explicit
    return _config_dir() / ENV_FILE_NAME


@dataclass(slots=True)
class EngineSettings:
    """Tunables for the reconciliation engine and its Graph transport.

    ``max_batch_size`` is capped at the Microsoft Graph ``$batch`` limit of
    20 requests; ``max_concurrent_batches`` bounds how many chunks of one
    phase are in flight at the same time.
    """

    max_batch_size: int = GRAPH_BATCH_LIMIT
    max_concurrent_batches: int = 4
    batch_max_retries: int = 2
    graph_base_url: str = DEFAULT_GRAPH_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.max_batch_size = max(1, min(self.max_batch_size, GRAPH_BATCH_LIMIT))
        self.max_concurrent_batches = max(1, self.max_concurrent_batches)
        self.batch_max_retries = max(0, self.batch_max_retries)
        self.graph_base_url = self.graph_base_url.rstrip("/")


class SettingsManager:
    """Load and persist engine settings with environment overrides."""

    def __init__(self, env_file: Path | None = None) -> None:
        self._env_file = _env_file_path(env_file)

    @property
    def env_file(self) -> Path:
        return self._env_file

    def load(self) -> EngineSettings:
        """Load settings from environment, falling back to persisted file."""
        load_dotenv(self._env_file, override=False)

        defaults = EngineSettings()
        return EngineSettings(
            max_batch_size=self._get_int("MAX_BATCH_SIZE", defaults.max_batch_size),
            max_concurrent_batches=self._get_int(
                "MAX_CONCURRENT_BATCHES", defaults.max_concurrent_batches
            ),
            batch_max_retries=self._get_int(
                "BATCH_MAX_RETRIES", defaults.batch_max_retries
            ),
            graph_base_url=self._get_env("GRAPH_BASE_URL") or defaults.graph_base_url,
            api_version=self._get_env("API_VERSION") or defaults.api_version,
            log_level=(self._get_env("LOG_LEVEL") or defaults.log_level).upper(),
        )

    def save(self, settings: EngineSettings) -> None:
        """Persist settings to the managed env file."""
        self._env_file.parent.mkdir(parents=True, exist_ok=True)
        content = [
            f"{ENV_PREFIX}MAX_BATCH_SIZE={settings.max_batch_size}",
            f"{ENV_PREFIX}MAX_CONCURRENT_BATCHES={settings.max_concurrent_batches}",
            f"{ENV_PREFIX}BATCH_MAX_RETRIES={settings.batch_max_retries}",
            f"{ENV_PREFIX}GRAPH_BASE_URL={settings.graph_base_url}",
            f"{ENV_PREFIX}API_VERSION={settings.api_version}",
            f"{ENV_PREFIX}LOG_LEVEL={settings.log_level}",
        ]
        self._env_file.write_text("\n".join(content) + "\n", encoding="utf-8")

    def _get_env(self, name: str) -> str | None:
        return os.getenv(f"{ENV_PREFIX}{name}") or None

    def _get_int(self, name: str, default: int) -> int:
        raw = self._get_env(name)
        if raw is None:
            return default
        try:
            return int(raw.strip())
        except ValueError:
            return default


__all__ = [
    "EngineSettings",
    "SettingsManager",
    "GRAPH_BATCH_LIMIT",
    "cache_dir",
    "config_dir",
    "log_dir",
]
