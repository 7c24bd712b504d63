"""Process-wide collaborators, built once at startup and handed to each component."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from core.settings import Settings

from .bot import TelegramBot
from .communiques import CommuniqueRepository
from .config import AppConfig
from .core import PublishingService
from .db import create_db_engine
from .history import HistoryRepository
from .mailer import SmtpConfig, SmtpMailer
from .notifications import NotificationDispatcher
from .recipients import WordPressUserDirectory
from .settings_store import SettingsStore
from .telegram import TelegramClient
from .wordpress import WordPressClient


@dataclass(slots=True)
class Resources:
    config: AppConfig
    engine: Engine
    wp_engine: Engine
    wordpress: WordPressClient
    history: HistoryRepository
    communiques: CommuniqueRepository
    settings_store: SettingsStore
    mailer: SmtpMailer
    dispatcher: NotificationDispatcher
    service: PublishingService
    telegram: TelegramClient | None = None
    bot: TelegramBot | None = None

    async def aclose(self) -> None:
        await self.wordpress.aclose()
        if self.telegram is not None:
            await self.telegram.aclose()
        self.engine.dispose()
        if self.wp_engine is not self.engine:
            self.wp_engine.dispose()


def smtp_config_from(settings: Settings) -> SmtpConfig:
    return SmtpConfig(
        host=settings.smtp_host,
        port=settings.smtp_port,
        user=settings.smtp_user,
        password=settings.smtp_pass,
        secure=settings.smtp_secure,
        sender=settings.mail_from,
    )


def build_resources(
    settings: Settings,
    config: AppConfig,
    *,
    engine: Engine | None = None,
    wp_engine: Engine | None = None,
    wordpress: WordPressClient | None = None,
    telegram: TelegramClient | None = None,
    mailer: SmtpMailer | None = None,
) -> Resources:
    """Wire every collaborator; explicit arguments replace the default construction."""

    timezone = config.runtime.timezone
    engine = engine or create_db_engine(settings.history_database_url())
    if wp_engine is None:
        wp_url = settings.wordpress_database_url()
        wp_engine = engine if wp_url == settings.history_database_url() else create_db_engine(wp_url)

    if wordpress is None:
        http = WordPressClient.build_http_client(
            settings.wp_url, settings.wp_user, settings.wp_app_password, config.wordpress.timeout_s
        )
        wordpress = WordPressClient(http, config)
    if telegram is None and settings.telegram_enabled:
        telegram = TelegramClient(TelegramClient.build_http_client(), settings.telegram_bot_token or "")

    history = HistoryRepository(engine, timezone)
    communiques = CommuniqueRepository(engine, timezone)
    settings_store = SettingsStore(engine, ttl_s=config.notifications.settings_ttl_s)
    mailer = mailer or SmtpMailer(smtp_config_from(settings))
    dispatcher = NotificationDispatcher(
        mailer,
        WordPressUserDirectory(wp_engine),
        settings_store,
        config.notifications,
        timezone,
        test_mode=settings.smtp_test_mode,
    )
    service = PublishingService(config, wordpress, history, communiques, dispatcher)
    bot = TelegramBot(telegram, service, config) if telegram is not None else None
    return Resources(
        config=config,
        engine=engine,
        wp_engine=wp_engine,
        wordpress=wordpress,
        history=history,
        communiques=communiques,
        settings_store=settings_store,
        mailer=mailer,
        dispatcher=dispatcher,
        service=service,
        telegram=telegram,
        bot=bot,
    )


__all__ = ["Resources", "build_resources", "smtp_config_from"]
