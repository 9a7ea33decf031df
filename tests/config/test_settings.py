from __future__ import annotations

import os
from pathlib import Path

import pytest

from intune_reconciler.config import EngineSettings, SettingsManager
from intune_reconciler.config.settings import GRAPH_BATCH_LIMIT


def test_settings_are_clamped() -> None:
    settings = EngineSettings(
        max_batch_size=50,
        max_concurrent_batches=0,
        batch_max_retries=-1,
        graph_base_url="https://graph.microsoft.us/",
    )

    assert settings.max_batch_size == GRAPH_BATCH_LIMIT
    assert settings.max_concurrent_batches == 1
    assert settings.batch_max_retries == 0
    assert settings.graph_base_url == "https://graph.microsoft.us"


def test_load_reads_environment_overrides(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    clean_env: None,
) -> None:
    monkeypatch.setenv("INTUNE_RECONCILER_MAX_BATCH_SIZE", "5")
    monkeypatch.setenv("INTUNE_RECONCILER_MAX_CONCURRENT_BATCHES", "not-a-number")
    monkeypatch.setenv("INTUNE_RECONCILER_LOG_LEVEL", "debug")

    settings = SettingsManager(env_file=tmp_path / "missing.env").load()

    assert settings.max_batch_size == 5
    assert settings.max_concurrent_batches == EngineSettings().max_concurrent_batches
    assert settings.log_level == "DEBUG"
    assert settings.api_version == "beta"


def test_save_then_load_uses_env_file(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    clean_env: None,
) -> None:
    # load_dotenv writes into os.environ; keep that contained to this test.
    monkeypatch.setattr(os, "environ", os.environ.copy())
    env_file = tmp_path / "nested" / "settings.env"
    manager = SettingsManager(env_file=env_file)

    manager.save(EngineSettings(max_batch_size=10, max_concurrent_batches=2, api_version="v1.0"))

    assert "INTUNE_RECONCILER_MAX_BATCH_SIZE=10" in env_file.read_text(encoding="utf-8")
    loaded = manager.load()
    assert loaded.max_batch_size == 10
    assert loaded.max_concurrent_batches == 2
    assert loaded.api_version == "v1.0"
