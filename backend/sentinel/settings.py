from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# This file is in backend/sentinel/settings.py -> parent.parent is backend/
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_timezone: str = "Asia/Manila"
    user_agent: str = "Mozilla/5.0 (compatible; SentinelPH/1.0)"

    # List of rotate user agents
    user_agents: list[str] = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:109.0) Gecko/20100101 Firefox/121.0",
    ]

    # Tried in order. {url} receives the percent-encoded target URL.
    proxy_templates: list[str] = [
        "https://api.allorigins.win/raw?url={url}",
        "https://corsproxy.io/?{url}",
        "https://api.codetabs.com/v1/proxy?quest={url}",
    ]

    # Per-attempt timeouts (seconds), one proxy attempt never runs longer than this
    earthquake_timeout_seconds: float = 8
    typhoon_timeout_seconds: float = 8
    volcano_timeout_seconds: float = 12
    weather_timeout_seconds: float = 15

    # Refresh intervals (minutes)
    earthquake_interval_minutes: int = 3
    typhoon_interval_minutes: int = 15
    weather_interval_minutes: int = 15
    volcano_interval_minutes: int = 30
    traffic_interval_minutes: int = 5
    log_rotation_hours: int = 12

    # "pages" fetches one activity page per volcano, "listing" reads one bulletin table
    volcano_strategy: str = "pages"
    volcano_listing_url: str = "https://wovodat.phivolcs.dost.gov.ph/bulletin/list-of-bulletin"

    preferences_path: Path = BASE_DIR / "data" / "preferences.json"
    logs_dir: Path = BASE_DIR / "logs"

    # AI summary collaborator. First alias found wins.
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("VITE_API_KEY", "API_KEY", "GEMINI_API_KEY"),
    )
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    # Hard bound on one AI call, no SDK-level retries
    ai_timeout_seconds: float = 20


class ConfigProvider:
    """Hands out secrets to collaborators so they never probe the environment themselves."""

    def __init__(self, source: Settings):
        self._settings = source

    def get_api_key(self) -> Optional[str]:
        key = (self._settings.gemini_api_key or "").strip()
        return key or None


settings = Settings()
config_provider = ConfigProvider(settings)
