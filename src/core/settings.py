from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from urllib.parse import quote_plus

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constraint import DEFAULT_CONFIG_PATH


class Settings(BaseSettings):
    """Process settings sourced from environment variables and ``.env``."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=False)

    config_path: Path = DEFAULT_CONFIG_PATH
    environment: str | None = None
    log_level: str = "INFO"
    log_json: bool = False
    timezone: str | None = None
    max_file_size_mb: int | None = None
    enable_image_optimization: bool | None = None

    wp_url: str = ""
    wp_user: str = ""
    wp_app_password: str = ""

    database_url: str | None = None
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = ""
    db_password: str = ""
    db_name: str = ""

    wp_db_url: str | None = None
    wp_db_host: str | None = None
    wp_db_port: int = 3306
    wp_db_user: str | None = None
    wp_db_pass: str | None = None
    wp_db_name: str | None = None

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_secure: bool = False
    smtp_test_mode: bool = False
    mail_from: str = Field(default="comunicados@bonaventurecclub.com")

    telegram_bot_token: str | None = None
    telegram_webhook_secret: str | None = None

    admin_api_key: str | None = None

    def missing_required(self) -> list[str]:
        """Names of the variables the publishing pipeline cannot run without."""

        required = {"WP_URL": self.wp_url, "WP_USER": self.wp_user, "WP_APP_PASSWORD": self.wp_app_password}
        if not self.database_url:
            required.update({"DB_USER": self.db_user, "DB_NAME": self.db_name})
        return [name for name, value in required.items() if not value]

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_webhook_secret)

    def history_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return _mysql_url(self.db_user, self.db_password, self.db_host, self.db_port, self.db_name)

    def wordpress_database_url(self) -> str:
        """URL of the database holding ``wp_users``; falls back to the history database."""

        if self.wp_db_url:
            return self.wp_db_url
        if self.wp_db_user and self.wp_db_name:
            return _mysql_url(
                self.wp_db_user,
                self.wp_db_pass or "",
                self.wp_db_host or "localhost",
                self.wp_db_port,
                self.wp_db_name,
            )
        return self.history_database_url()


def _mysql_url(user: str, password: str, host: str, port: int, name: str) -> str:
    credentials = quote_plus(user)
    if password:
        credentials += f":{quote_plus(password)}"
    return f"mysql+pymysql://{credentials}@{host}:{port}/{name}?charset=utf8mb4"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
