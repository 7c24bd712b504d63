"""SQLAlchemy Core schema for the service's own tables."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from core.constraint import DEFAULT_TIMEZONE

metadata = sa.MetaData()

# SQLite only autoincrements INTEGER PRIMARY KEY columns
PrimaryKey = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

posts_history = sa.Table(
    "condo360_posts_history",
    metadata,
    sa.Column("id", PrimaryKey, primary_key=True, autoincrement=True),
    sa.Column("wp_post_id", sa.BigInteger, nullable=True, index=True),
    sa.Column("title", sa.String(255), nullable=False),
    sa.Column("status", sa.String(50), nullable=False, server_default="processing", index=True),
    sa.Column("created_by", sa.String(255), nullable=False, index=True),
    sa.Column("telegram_chat_id", sa.String(64), nullable=True),
    sa.Column("telegram_message_id", sa.String(64), nullable=True),
    sa.Column("file_name", sa.String(255), nullable=True),
    sa.Column("media_ids", sa.JSON, nullable=True),
    sa.Column("wp_response", sa.JSON, nullable=True),
    sa.Column("error_message", sa.Text, nullable=True),
    sa.Column("created_at", sa.DateTime, nullable=False, index=True),
    sa.Column("updated_at", sa.DateTime, nullable=False),
    sa.Column("timezone", sa.String(50), nullable=False, server_default=DEFAULT_TIMEZONE),
)

site_settings = sa.Table(
    "condo360_settings",
    metadata,
    sa.Column("id", PrimaryKey, primary_key=True, autoincrement=True),
    sa.Column("setting_key", sa.String(100), nullable=False, unique=True),
    sa.Column("setting_value", sa.Text, nullable=True),
    sa.Column("updated_at", sa.DateTime, nullable=True),
)

communiques = sa.Table(
    "condo360_communiques",
    metadata,
    sa.Column("id", PrimaryKey, primary_key=True, autoincrement=True),
    sa.Column("wp_user_id", sa.BigInteger, nullable=False, index=True),
    sa.Column("user_display_name", sa.String(255), nullable=True),
    sa.Column("title", sa.String(255), nullable=False),
    sa.Column("description", sa.Text, nullable=True),
    sa.Column("original_filename", sa.String(255), nullable=False),
    sa.Column("file_type", sa.String(10), nullable=False, index=True),
    sa.Column("wp_post_id", sa.BigInteger, nullable=True),
    sa.Column("wp_post_url", sa.String(500), nullable=True),
    sa.Column("wp_media_id", sa.BigInteger, nullable=True),
    sa.Column("created_at", sa.DateTime, nullable=False, index=True),
)

communique_notifications = sa.Table(
    "condo360_communiques_notifications",
    metadata,
    sa.Column("id", PrimaryKey, primary_key=True, autoincrement=True),
    sa.Column(
        "communique_id",
        PrimaryKey,
        sa.ForeignKey("condo360_communiques.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    sa.Column("email", sa.String(255), nullable=False),
    sa.Column("status", sa.String(20), nullable=False),
    sa.Column("error_message", sa.Text, nullable=True),
    sa.Column("sent_at", sa.DateTime, nullable=False),
)


def create_db_engine(url: str) -> Engine:
    if url.startswith("sqlite") and url.split("://", 1)[-1] in {"", "/:memory:"}:
        return sa.create_engine(
            url, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    if url.startswith("sqlite"):
        return sa.create_engine(url, connect_args={"check_same_thread": False})
    return sa.create_engine(url, pool_pre_ping=True, pool_recycle=3600)


def init_db(engine: Engine) -> None:
    metadata.create_all(engine)


def ping(engine: Engine) -> None:
    with engine.connect() as connection:
        connection.execute(sa.text("SELECT 1"))


__all__ = [
    "communique_notifications",
    "communiques",
    "create_db_engine",
    "init_db",
    "metadata",
    "ping",
    "posts_history",
    "site_settings",
]
