from __future__ import annotations

import time
from dataclasses import dataclass, fields
from threading import Lock
from typing import Callable

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from .db import site_settings
from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SiteSettings:
    """Typed view of the ``condo360_settings`` key/value table."""

    email_template_logo_url: str = (
        "https://bonaventurecclub.com/wp-content/uploads/2025/09/2.png"
    )
    email_template_logo_width: int = 281
    email_template_logo_height: int = 94
    notification_role_filter: str = "subscriber"

    @classmethod
    def from_rows(cls, rows: dict[str, str | None]) -> "SiteSettings":
        defaults = cls()
        values: dict[str, object] = {}
        for item in fields(cls):
            raw = rows.get(item.name)
            if raw is None or raw == "":
                continue
            default = getattr(defaults, item.name)
            try:
                values[item.name] = int(raw) if isinstance(default, int) else str(raw)
            except ValueError:
                logger.warning("Ignoring invalid setting", extra={"key": item.name, "value": raw})
        return cls(**values)

    def as_rows(self) -> dict[str, str]:
        return {item.name: str(getattr(self, item.name)) for item in fields(self)}


class SettingsStore:
    """Cached snapshot of the site settings, refreshed after ``ttl_s`` or on ``invalidate``."""

    def __init__(
        self, engine: Engine, ttl_s: float = 300.0, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._engine = engine
        self._ttl_s = ttl_s
        self._clock = clock
        self._lock = Lock()
        self._snapshot: SiteSettings | None = None
        self._loaded_at = 0.0

    def get(self) -> SiteSettings:
        with self._lock:
            expired = self._clock() - self._loaded_at >= self._ttl_s
            if self._snapshot is None or expired:
                self._snapshot = self._load()
                self._loaded_at = self._clock()
            return self._snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None

    def set(self, key: str, value: str) -> None:
        if key not in {item.name for item in fields(SiteSettings)}:
            raise KeyError(f"Unknown setting: {key}")
        with self._engine.begin() as connection:
            updated = connection.execute(
                sa.update(site_settings)
                .where(site_settings.c.setting_key == key)
                .values(setting_value=value)
            )
            if not updated.rowcount:
                connection.execute(
                    sa.insert(site_settings).values(setting_key=key, setting_value=value)
                )
        self.invalidate()

    def seed_defaults(self) -> None:
        existing = self._read_rows()
        for key, value in SiteSettings().as_rows().items():
            if key not in existing:
                self.set(key, value)

    def _load(self) -> SiteSettings:
        return SiteSettings.from_rows(self._read_rows())

    def _read_rows(self) -> dict[str, str | None]:
        query = sa.select(site_settings.c.setting_key, site_settings.c.setting_value)
        with self._engine.connect() as connection:
            return {row.setting_key: row.setting_value for row in connection.execute(query)}


__all__ = ["SettingsStore", "SiteSettings"]
