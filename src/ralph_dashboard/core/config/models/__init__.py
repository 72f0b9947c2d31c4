"""Pydantic configuration models."""

from .dashboard import (
    DEFAULT_DOCUMENTS,
    DashboardConfig,
    DocumentsConfig,
    GeneratorConfig,
    GitConfig,
    LoopCommandConfig,
    ServerConfig,
    WatchConfig,
)

__all__ = [
    "DEFAULT_DOCUMENTS",
    "DashboardConfig",
    "DocumentsConfig",
    "GeneratorConfig",
    "GitConfig",
    "LoopCommandConfig",
    "ServerConfig",
    "WatchConfig",
]
