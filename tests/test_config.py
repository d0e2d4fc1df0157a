"""Tests for config module."""

import importlib

import dotenv
import pytest

import remind_bot.config as config_mod


@pytest.fixture(autouse=True)
def _reload_clean(monkeypatch):
    monkeypatch.setattr(dotenv, "load_dotenv", lambda: None)
    yield
    monkeypatch.undo()
    monkeypatch.setattr(dotenv, "load_dotenv", lambda: None)
    importlib.reload(config_mod)


def test_invalid_dev_guild_exits(monkeypatch):
    monkeypatch.setenv("REMIND_DEV_GUILD", "my-server")

    with pytest.raises(SystemExit):
        importlib.reload(config_mod)


def test_dev_guild_parsed(monkeypatch):
    monkeypatch.setenv("REMIND_DEV_GUILD", "123456789012345678")

    importlib.reload(config_mod)
    assert config_mod.DEV_GUILD == 123456789012345678


def test_paths_follow_home(monkeypatch, tmp_path):
    monkeypatch.setenv("REMIND_BOT_HOME", str(tmp_path))
    monkeypatch.delenv("REMIND_DB_FILE", raising=False)
    monkeypatch.delenv("REMIND_DEV_GUILD", raising=False)

    importlib.reload(config_mod)
    assert config_mod.DATA_DIR == tmp_path
    assert config_mod.DB_FILE == tmp_path / "reminders.json"
    assert config_mod.DEV_GUILD is None


def test_db_file_override(monkeypatch, tmp_path):
    monkeypatch.setenv("REMIND_DB_FILE", str(tmp_path / "other.json"))
    monkeypatch.setenv("REMIND_LOG_LEVEL", "debug")

    importlib.reload(config_mod)
    assert config_mod.DB_FILE == tmp_path / "other.json"
    assert config_mod.LOG_LEVEL == "DEBUG"
