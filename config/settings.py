import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from core.errors import ConfigurationError

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw not in (None, "") else default
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        return float(raw) if raw not in (None, "") else default
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


class Settings(BaseModel):
    # --- Telegram ---
    telegram_bot_token: str
    telegram_chat_id: str
    admin_user_id: Optional[str] = None

    # --- Persistence ---
    state_path: str = "data/state.json"
    history_db_path: str = "data/history.db"

    # --- Cycle ---
    poll_interval_seconds: int = Field(default=1800, ge=1)
    confirm_threshold: int = Field(default=2, ge=1)
    fetch_timeout_seconds: float = 30.0
    publish_on_boot: bool = False

    # --- Epic ---
    epic_locale: str = "it"
    epic_country: str = "IT"
    epic_require_free_signal: bool = False

    # --- IsThereAnyDeal / Steam ---
    itad_api_key: Optional[str] = None
    itad_country: str = "IT"
    itad_user_agent: str = "free-games-telegram-bot/1.0"
    itad_max_pages: int = 10
    steam_max_final_eur: float = 9.0
    steam_min_discount_pct: int = 50
    steam_max_results: int = 60
    steam_strict_aaa: bool = False
    steam_aaa_target: int = 12
    steam_aaa_keywords: List[str] = Field(default_factory=list)
    steam_aaa_min_token_len: int = 4

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Reads the process environment (and .env) into a Settings object.

        Raises:
            ConfigurationError: when the Telegram token or destination chat is missing.
        """
        token = os.getenv("TELEGRAM_BOT_TOKEN")
        chat_id = os.getenv("TELEGRAM_CHAT_ID")
        if not token:
            raise ConfigurationError("TELEGRAM_BOT_TOKEN is not set")
        if not chat_id:
            raise ConfigurationError("TELEGRAM_CHAT_ID is not set")

        poll_interval = _env_int("POLL_INTERVAL_SECONDS", 1800)
        if poll_interval < 1:
            raise ConfigurationError("POLL_INTERVAL_SECONDS must be at least 1")

        confirm_threshold = _env_int("CONFIRM_THRESHOLD", 2)
        if confirm_threshold < 1:
            raise ConfigurationError("CONFIRM_THRESHOLD must be at least 1")

        data_dir = os.getenv("DATA_DIR", "data")
        keywords = [k.strip() for k in os.getenv("STEAM_AAA_KEYWORDS", "").split("|") if k.strip()]

        return cls(
            telegram_bot_token=token,
            telegram_chat_id=chat_id,
            admin_user_id=os.getenv("ADMIN_USER_ID") or None,
            state_path=os.getenv("STATE_PATH") or os.path.join(data_dir, "state.json"),
            history_db_path=os.getenv("HISTORY_DB_PATH") or os.path.join(data_dir, "history.db"),
            poll_interval_seconds=poll_interval,
            confirm_threshold=confirm_threshold,
            fetch_timeout_seconds=_env_float("FETCH_TIMEOUT_SECONDS", 30.0),
            publish_on_boot=_env_bool("PUBLISH_ON_BOOT"),
            epic_locale=os.getenv("EPIC_LOCALE", "it"),
            epic_country=os.getenv("EPIC_COUNTRY", "IT"),
            epic_require_free_signal=_env_bool("EPIC_REQUIRE_FREE_SIGNAL"),
            itad_api_key=os.getenv("ITAD_API_KEY") or None,
            itad_country=os.getenv("ITAD_COUNTRY", "IT"),
            itad_user_agent=os.getenv("ITAD_UA", "free-games-telegram-bot/1.0"),
            itad_max_pages=_env_int("ITAD_MAX_PAGES", 10),
            steam_max_final_eur=_env_float("STEAM_MAX_FINAL_EUR", 9.0),
            steam_min_discount_pct=_env_int("STEAM_MIN_DISCOUNT_PCT", 50),
            steam_max_results=_env_int("STEAM_MAX_RESULTS", 60),
            steam_strict_aaa=_env_bool("STEAM_STRICT_AAA"),
            steam_aaa_target=_env_int("STEAM_AAA_TARGET", 12),
            steam_aaa_keywords=keywords,
            steam_aaa_min_token_len=_env_int("STEAM_AAA_MIN_TOKEN_LEN", 4),
        )
