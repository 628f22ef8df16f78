"""Configuration tests"""

import logging

import pytest

from habito.config import DEFAULT_STREAK_MILESTONES, HabitoConfig
from habito.utils.logger import setup_logger


class TestHabitoConfig:

    def test_defaults(self, monkeypatch):
        for name in ("HABITO_TIMEZONE", "STREAK_MILESTONES", "ACHIEVEMENTS_ENABLED", "LOG_TO_FILE"):
            monkeypatch.delenv(name, raising=False)

        cfg = HabitoConfig()

        assert cfg.tracking.timezone == "UTC"
        assert cfg.tracking.achievements_enabled is True
        assert cfg.tracking.streak_milestones == DEFAULT_STREAK_MILESTONES
        assert list(cfg.get_logging_config()["handlers"]) == ["console"]

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HABITO_TIMEZONE", "Europe/Moscow")
        monkeypatch.setenv("STREAK_MILESTONES", "30, 7,3")
        monkeypatch.setenv("ACHIEVEMENTS_ENABLED", "false")
        monkeypatch.setenv("LOG_TO_FILE", "true")
        monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))

        cfg = HabitoConfig()

        assert cfg.tracking.tzinfo.zone == "Europe/Moscow"
        assert cfg.tracking.streak_milestones == [3, 7, 30]
        assert cfg.tracking.achievements_enabled is False
        assert "file" in cfg.get_logging_config()["handlers"]

    @pytest.mark.parametrize("name, value", [
        ("HABITO_TIMEZONE", "Mars/Olympus"),
        ("STREAK_MILESTONES", "3,seven"),
        ("STREAK_MILESTONES", "0,3"),
        ("LOG_LEVEL", "LOUD"),
        ("ENVIRONMENT", "qa"),
    ])
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ValueError):
            HabitoConfig()


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogger:

    def test_file_handler_writes_to_log_dir(self, monkeypatch, tmp_path, restore_root_logging):
        log_dir = tmp_path / "logs"
        monkeypatch.setenv("LOG_TO_FILE", "true")
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        monkeypatch.setenv("ENVIRONMENT", "development")
        cfg = HabitoConfig()

        logger = setup_logger(cfg)
        logger.info("streak recomputed")
        for handler in logging.getLogger().handlers:
            handler.flush()

        log_file = log_dir / "habito_development.log"
        assert logger.name == "habito"
        assert log_file.exists()
        assert "streak recomputed" in log_file.read_text(encoding="utf-8")
