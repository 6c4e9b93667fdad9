"""Tests for attrs-validated configuration and the config manager."""
import pytest

from signal_label_lab.config import settings
from signal_label_lab.config.settings import (
    AppConfig,
    ConfigManager,
    DisplayConfig,
    EditingConfig,
    ParsingConfig,
    get_config,
    get_config_manager,
)


class TestAppConfig:
    """Tests for AppConfig and its sections."""

    def test_defaults(self):
        config = AppConfig.default()
        assert config.parsing.default_sampling_rate == 1000.0
        assert config.parsing.display_channel == "A4"
        assert config.editing.drag_min_separation == 0.01
        assert config.editing.quick_append_duration == 0.2
        assert config.editing.segment_match_epsilon == 0.002
        assert config.editing.undo_levels == 20
        assert config.display.max_display_points == 10_000
        assert config.display.initial_window_s == 10.0
        assert config.export.exports_dir == "exports"
        assert config.export.signal_decimals == 6

    def test_dict_round_trip(self):
        config = AppConfig(editing=EditingConfig(drag_min_separation=0.05))
        restored = AppConfig.from_dict(config.to_dict())
        assert restored == config

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        config = AppConfig(display=DisplayConfig(max_display_points=500))
        config.save(path)
        assert AppConfig.load(path).display.max_display_points == 500

    def test_partial_dict_uses_defaults(self):
        config = AppConfig.from_dict({"editing": {"undo_levels": 5}})
        assert config.editing.undo_levels == 5
        assert config.editing.drag_min_separation == 0.01

    @pytest.mark.parametrize(
        "factory",
        [
            lambda: EditingConfig(drag_min_separation=-0.01),
            lambda: EditingConfig(undo_levels=0),
            lambda: DisplayConfig(max_display_points=0),
            lambda: ParsingConfig(default_sampling_rate=0.0),
            lambda: ParsingConfig(display_channel="A7"),
        ],
    )
    def test_invalid_values_rejected(self, factory):
        with pytest.raises(ValueError):
            factory()

    def test_wrong_type_rejected(self):
        with pytest.raises(TypeError):
            EditingConfig(undo_levels=2.5)

    def test_assignment_validated(self):
        config = AppConfig()
        with pytest.raises(ValueError):
            config.display.max_display_points = -1


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_writes_default_config(self, tmp_path):
        manager = ConfigManager(tmp_path)
        config = manager.get_config()
        assert config == AppConfig.default()
        assert (tmp_path / "default_config.json").exists()

    def test_user_config_preferred(self, tmp_path):
        AppConfig(editing=EditingConfig(undo_levels=3)).save(tmp_path / "user_config.json")
        assert ConfigManager(tmp_path).get_config().editing.undo_levels == 3

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SLL_DRAG_MIN_SEPARATION", "0.02")
        monkeypatch.setenv("SLL_MAX_DISPLAY_POINTS", "2500")
        monkeypatch.setenv("SLL_EXPORTS_DIR", str(tmp_path / "out"))

        config = ConfigManager(tmp_path).get_config()
        assert config.editing.drag_min_separation == 0.02
        assert config.display.max_display_points == 2500
        assert config.export.get_exports_path() == tmp_path / "out"

    def test_save_and_reset(self, tmp_path):
        manager = ConfigManager(tmp_path)
        manager.get_config().editing.undo_levels = 7
        manager.save_user_config()
        assert ConfigManager(tmp_path).get_config().editing.undo_levels == 7

        manager.reset_to_defaults()
        assert not (tmp_path / "user_config.json").exists()
        assert manager.get_config().editing.undo_levels == 20

    def test_global_config_comes_from_manager(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "_config_manager", ConfigManager(tmp_path))

        assert get_config_manager().config_dir == tmp_path
        assert get_config() is get_config_manager().get_config()
