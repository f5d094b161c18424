import pytest

from config.settings import Settings
from core.errors import ConfigurationError


@pytest.fixture
def env(monkeypatch):
    for name in ("TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "CONFIRM_THRESHOLD", "DATA_DIR", "STATE_PATH",
                 "HISTORY_DB_PATH", "STEAM_AAA_KEYWORDS", "PUBLISH_ON_BOOT", "POLL_INTERVAL_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "-100123")
    return monkeypatch


def test_defaults(env):
    settings = Settings.from_env()
    assert settings.confirm_threshold == 2
    assert settings.state_path.endswith("state.json")
    assert settings.history_db_path.endswith("history.db")
    assert settings.publish_on_boot is False


def test_missing_chat_is_configuration_error(env):
    env.delenv("TELEGRAM_CHAT_ID")
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_threshold_below_one_is_rejected(env):
    env.setenv("CONFIRM_THRESHOLD", "0")
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_non_numeric_value_is_rejected(env):
    env.setenv("POLL_INTERVAL_SECONDS", "soon")
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_parses_lists_and_flags(env):
    env.setenv("STEAM_AAA_KEYWORDS", "elden ring| gta |")
    env.setenv("PUBLISH_ON_BOOT", "true")
    env.setenv("DATA_DIR", "/tmp/bot")
    settings = Settings.from_env()
    assert settings.steam_aaa_keywords == ["elden ring", "gta"]
    assert settings.publish_on_boot is True
    assert settings.state_path == "/tmp/bot/state.json"


def test_poll_interval_below_one_is_rejected(env):
    env.setenv("POLL_INTERVAL_SECONDS", "0")
    with pytest.raises(ConfigurationError):
        Settings.from_env()
