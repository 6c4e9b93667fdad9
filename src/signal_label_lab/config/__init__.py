"""Configuration management for SignalLabelLab."""

from .settings import (
    AppConfig,
    ConfigManager,
    DisplayConfig,
    EditingConfig,
    ExportConfig,
    ParsingConfig,
    get_config,
    get_config_manager,
)

__all__ = [
    "AppConfig",
    "ConfigManager",
    "ParsingConfig",
    "EditingConfig",
    "DisplayConfig",
    "ExportConfig",
    "get_config",
    "get_config_manager",
]
