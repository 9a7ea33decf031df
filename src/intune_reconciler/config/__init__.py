"""Configuration helpers for the Intune assignment reconciler."""

from .settings import GRAPH_BATCH_LIMIT, EngineSettings, SettingsManager

__all__ = [
    "GRAPH_BATCH_LIMIT",
    "EngineSettings",
    "SettingsManager",
]
