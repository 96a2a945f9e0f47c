"""
Configuration Tests

GameConfig defaults, validation and FORTRESS_* environment overrides.
"""

import pytest

from fortress.config import GameConfig


class TestGameConfig:

    def test_defaults(self):
        config = GameConfig()
        assert config.total_quests == 3
        assert config.min_battle_cards == 5
        assert config.max_fleet_size == config.total_positions == 5
        assert config.card_lock_threshold == -25
        assert config.storage_backend == "memory"

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError):
            GameConfig(storage_backend="redis")

    def test_fleet_must_fill_the_line(self):
        with pytest.raises(ValueError):
            GameConfig(max_fleet_size=4)

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FORTRESS_STORAGE_DIR", str(tmp_path))
        monkeypatch.setenv("FORTRESS_STORAGE_BACKEND", "file")
        monkeypatch.setenv("FORTRESS_DEBUG", "true")
        monkeypatch.setenv("FORTRESS_LOG_LEVEL", "debug")

        config = GameConfig.from_env()
        assert config.storage_dir == str(tmp_path)
        assert config.storage_backend == "file"
        assert config.debug is True
        assert config.log_level == "DEBUG"

    def test_overrides_win_over_env(self, monkeypatch):
        monkeypatch.setenv("FORTRESS_STORAGE_BACKEND", "file")
        assert GameConfig.from_env(storage_backend="memory").storage_backend == "memory"

    def test_env_defaults(self, monkeypatch):
        for name in ("FORTRESS_STORAGE_DIR", "FORTRESS_STORAGE_BACKEND", "FORTRESS_DEBUG", "FORTRESS_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        config = GameConfig.from_env()
        assert config.debug is False
        assert config.log_level == "INFO"
        assert config.storage_dir
