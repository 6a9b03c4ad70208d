"""Worker and engine settings via pydantic-settings."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration read from ``PFG_``-prefixed environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="PFG_",
        env_file=".env",
        case_sensitive=False,
    )

    # --- Runtime ---
    app_version: str = "0.1.0"
    environment: str = "development"
    redis_url: str = "redis://localhost:6379/0"
    log_level: str = "INFO"
    log_format: str = "json"

    # --- Gamification ---
    seed_on_startup: bool = False
    daily_challenge_duration_hours: int = 24
    weekly_challenge_duration_days: int = 7
    base_game_xp: int = 10
    score_per_bonus_xp: int = 100

    # --- Notification email ---
    email_provider: str = "smtp"
    email_from_address: str = "noreply@perfectfit.game"
    email_from_name: str = "PerfectFit"
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    resend_api_key: str = ""
    frontend_base_url: str = "https://perfectfit.game"

    @field_validator("log_format")
    @classmethod
    def _known_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "console"):
            msg = "log_format must be 'json' or 'console'"
            raise ValueError(msg)
        return value

    @field_validator("score_per_bonus_xp")
    @classmethod
    def _positive_bonus_step(cls, value: int) -> int:
        if value <= 0:
            msg = "score_per_bonus_xp must be positive"
            raise ValueError(msg)
        return value


@lru_cache
def get_settings() -> Settings:
    """Cached settings for the process."""
    return Settings()
