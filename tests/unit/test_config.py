"""Unit tests for configuration validation"""
import pytest

from src import config


def test_defaults_are_valid():
    config.validate_config()


def test_bad_timezone(monkeypatch):
    monkeypatch.setattr(config, "APP_TIMEZONE", "Mars/Olympus_Mons")
    with pytest.raises(ValueError, match="APP_TIMEZONE"):
        config.validate_config()


@pytest.mark.parametrize("name", ["READING_REMINDER_HOUR", "PARENT_REMINDER_HOUR", "NOTIFICATION_CLEANUP_HOUR"])
def test_gate_hours_must_be_on_the_clock(monkeypatch, name):
    monkeypatch.setattr(config, name, 24)
    with pytest.raises(ValueError, match=name):
        config.validate_config()


@pytest.mark.parametrize("name", ["BOOKS_PER_LEVEL", "LEVEL_UP_BONUS_PER_LEVEL"])
def test_leveling_settings_must_be_positive(monkeypatch, name):
    monkeypatch.setattr(config, name, 0)
    with pytest.raises(ValueError, match=name):
        config.validate_config()


def test_missing_database_url(monkeypatch):
    monkeypatch.setattr(config, "DATABASE_URL", "")
    with pytest.raises(ValueError, match="DATABASE_URL"):
        config.validate_config()
