from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3100
    debug: bool = False
    # Provider shared secret (the login bot token); verification endpoints fail with 500 when unset
    bot_token: str | None = Field(default=None, validation_alias=AliasChoices("TELEGATE_BOT_TOKEN", "TELEGRAM_BOT_TOKEN"))
    bot_api_secret: str | None = None  # Shared with the bot integration process for /auth/bot-login
    database_url: str | None = None  # MongoDB URL, e.g. mongodb://localhost/telegate; in-memory store when unset
    cors_origins: list[str] = []
    callback_target_origin: str = "*"  # postMessage target origin used by the callback relay page
    session_timeout_seconds: int = 7 * 24 * 60 * 60
    cleanup_interval_seconds: float = 60 * 60

    model_config = {
        "env_file": [".env"],
        "env_prefix": "TELEGATE_",
        "extra": "ignore",
        "populate_by_name": True,
    }
