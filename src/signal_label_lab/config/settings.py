"""Configuration management for SignalLabelLab.

Uses attrs with validators for type-safe, validated configuration.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import attrs
from attrs import define, field


def positive_float(instance, attribute, value):
    """Validator: ensure value is a positive float."""
    if value <= 0:
        raise ValueError(f"{attribute.name} must be positive, got {value}")


def positive_int(instance, attribute, value):
    """Validator: ensure value is a positive integer."""
    if value <= 0:
        raise ValueError(f"{attribute.name} must be positive, got {value}")


def nonnegative_float(instance, attribute, value):
    """Validator: ensure value is non-negative."""
    if value < 0:
        raise ValueError(f"{attribute.name} must be non-negative, got {value}")


@define
class ParsingConfig:
    """Input parsing defaults."""

    # Used when a header carries no usable sampling rate
    default_sampling_rate: float = field(default=1000.0, validator=[attrs.validators.instance_of(float), positive_float])
    # Channel whose min/max drives the display value range
    display_channel: str = field(default="A4", validator=attrs.validators.in_(["A1", "A2", "A3", "A4", "A5", "A6"]))


@define
class EditingConfig:
    """Segment editing parameters (seconds)."""

    drag_min_separation: float = field(default=0.01, validator=[attrs.validators.instance_of(float), positive_float])
    quick_append_duration: float = field(default=0.2, validator=[attrs.validators.instance_of(float), positive_float])
    segment_match_epsilon: float = field(default=0.002, validator=[attrs.validators.instance_of(float), nonnegative_float])
    undo_levels: int = field(default=20, validator=[attrs.validators.instance_of(int), positive_int])


@define
class DisplayConfig:
    """Display decimation and initial view window."""

    max_display_points: int = field(default=10_000, validator=[attrs.validators.instance_of(int), positive_int])
    initial_window_s: float = field(default=10.0, validator=[attrs.validators.instance_of(float), positive_float])


@define
class ExportConfig:
    """Export destination and value formatting."""

    exports_dir: str = field(default="exports", validator=attrs.validators.instance_of(str))
    signal_decimals: int = field(default=6, validator=[attrs.validators.instance_of(int), positive_int])

    def get_exports_path(self) -> Path:
        """Get exports directory as Path."""
        return Path(self.exports_dir)


@define
class AppConfig:
    """Main application configuration combining all sub-configs."""

    parsing: ParsingConfig = field(factory=ParsingConfig)
    editing: EditingConfig = field(factory=EditingConfig)
    display: DisplayConfig = field(factory=DisplayConfig)
    export: ExportConfig = field(factory=ExportConfig)

    @classmethod
    def default(cls) -> AppConfig:
        """Create default configuration."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        """Create configuration from dictionary."""
        return cls(
            parsing=ParsingConfig(**data.get("parsing", {})),
            editing=EditingConfig(**data.get("editing", {})),
            display=DisplayConfig(**data.get("display", {})),
            export=ExportConfig(**data.get("export", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return attrs.asdict(self)

    def save(self, filepath: str | Path) -> None:
        """Save configuration to JSON file."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str | Path) -> AppConfig:
        """Load configuration from JSON file."""
        with open(filepath) as f:
            data = json.load(f)
        return cls.from_dict(data)


class ConfigManager:
    """Manages application configuration with environment variable overrides."""

    def __init__(self, config_dir: str | Path | None = None):
        """Initialize config manager.

        Args:
            config_dir: Directory for config files. Defaults to ~/.signal_label_lab/
        """
        if config_dir is None:
            config_dir = Path.home() / ".signal_label_lab"
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.user_config_path = self.config_dir / "user_config.json"
        self.default_config_path = self.config_dir / "default_config.json"

        self._config: AppConfig | None = None

    def get_config(self) -> AppConfig:
        """Get current configuration with environment variable overrides."""
        if self._config is None:
            self._config = self._load_config()
            self._apply_env_overrides()
        return self._config

    def _load_config(self) -> AppConfig:
        """Load configuration from user or default file."""
        if self.user_config_path.exists():
            return AppConfig.load(self.user_config_path)

        if self.default_config_path.exists():
            return AppConfig.load(self.default_config_path)

        config = AppConfig.default()
        config.save(self.default_config_path)
        return config

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to config.

        Environment variables like SLL_DRAG_MIN_SEPARATION=0.02 override
        config.editing.drag_min_separation
        """
        if self._config is None:
            return

        env_prefix = "SLL_"

        for attr in ["drag_min_separation", "quick_append_duration", "segment_match_epsilon"]:
            env_var = f"{env_prefix}{attr.upper()}"
            if env_var in os.environ:
                setattr(self._config.editing, attr, float(os.environ[env_var]))

        for attr in ["max_display_points"]:
            env_var = f"{env_prefix}{attr.upper()}"
            if env_var in os.environ:
                setattr(self._config.display, attr, int(os.environ[env_var]))

        env_var = f"{env_prefix}EXPORTS_DIR"
        if env_var in os.environ:
            self._config.export.exports_dir = os.environ[env_var]

    def save_user_config(self) -> None:
        """Save current configuration as user config."""
        if self._config is not None:
            self._config.save(self.user_config_path)

    def reset_to_defaults(self) -> None:
        """Reset configuration to defaults."""
        self._config = AppConfig.default()
        if self.user_config_path.exists():
            self.user_config_path.unlink()


# Global singleton instance
_config_manager: ConfigManager | None = None


def get_config() -> AppConfig:
    """Get global configuration singleton.

    Returns:
        AppConfig instance with current settings.

    Example:
        >>> from signal_label_lab.config.settings import get_config
        >>> config = get_config()
        >>> print(config.editing.drag_min_separation)
        0.01
    """
    return get_config_manager().get_config()


def get_config_manager() -> ConfigManager:
    """Get global config manager singleton.

    Returns:
        ConfigManager instance for advanced config management.
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager
