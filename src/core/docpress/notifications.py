"""E-mail notifications for published communiqués."""

from __future__ import annotations

import html
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from .config import NotificationConfig
from .logging import get_logger
from .mailer import NotificationError, SmtpMailer
from .models import NotificationResult
from .recipients import Recipient, WordPressUserDirectory, filter_allowed_domains
from .settings_store import SettingsStore, SiteSettings

logger = get_logger(__name__)

TEST_MODE_MESSAGE = "Modo de prueba activado"

_MONTHS = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)
_WEEKDAYS = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")

EMAIL_TEMPLATE = """<!DOCTYPE html>
<html lang="es">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Comunicado de la Junta</title>
</head>
<body style="margin:0;padding:0;background:#f4f4f4;font-family:Arial,sans-serif;color:#333;">
  <div style="max-width:600px;margin:0 auto;background:#ffffff;">
    <div style="text-align:center;padding:30px 20px;background:#2c3e50;">
      <img src="{logo_url}" alt="Bonaventure Country Club" width="{logo_width}" height="{logo_height}">
    </div>
    <div style="padding:30px;">
      <h1 style="color:#2c3e50;font-size:24px;text-align:center;">Comunicado de la Junta</h1>
      <p>Estimado(a) propietario(a),</p>
      <p>La Junta de Condominio ha publicado un nuevo comunicado que requiere su atención:</p>
      <div style="background:#f8f9fa;border-left:4px solid #3498db;padding:15px;margin:20px 0;">
        <strong>{title}</strong><br>
        {description}
      </div>
      <div style="text-align:center;">
        <a href="{url}" style="display:inline-block;background:#3498db;color:#ffffff;padding:12px 30px;text-decoration:none;border-radius:5px;">Ver Comunicado Completo</a>
      </div>
      <p>Por favor, revise este comunicado en su totalidad para mantenerse informado sobre los asuntos importantes de nuestro condominio.</p>
      <p style="color:#7f8c8d;font-size:14px;"><strong>Fecha de publicación:</strong> {published_at}</p>
    </div>
    <div style="background:#ecf0f1;padding:20px;text-align:center;font-size:14px;">
      <p><strong>Junta de Condominio</strong><br>Bonaventure Country Club</p>
      <p style="font-size:12px;">Este es un mensaje automático del sistema de comunicados.</p>
    </div>
  </div>
</body>
</html>
"""

TEST_TEMPLATE = """<div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;padding:20px;">
  <h2 style="color:#2c3e50;">Prueba de Sistema de Comunicados</h2>
  <p>Este es un correo de prueba para verificar que el sistema de notificaciones está funcionando correctamente.</p>
  <p><strong>Fecha:</strong> {published_at}</p>
</div>
"""


@dataclass(slots=True)
class Announcement:
    title: str
    description: str
    url: str


def format_spanish_date(moment: datetime) -> str:
    """``lunes, 6 de octubre de 2025 a las 3:05 PM``."""

    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return (
        f"{_WEEKDAYS[moment.weekday()]}, {moment.day} de {_MONTHS[moment.month - 1]} "
        f"de {moment.year} a las {hour}:{moment.minute:02d} {suffix}"
    )


def render_email(announcement: Announcement, settings: SiteSettings, published_at: str) -> str:
    description = html.escape(announcement.description or "").replace("\n", "<br>")
    return EMAIL_TEMPLATE.format(
        logo_url=html.escape(settings.email_template_logo_url, quote=True),
        logo_width=settings.email_template_logo_width,
        logo_height=settings.email_template_logo_height,
        title=html.escape(announcement.title),
        description=description,
        url=html.escape(announcement.url, quote=True),
        published_at=html.escape(published_at),
    )


class NotificationDispatcher:
    def __init__(
        self,
        mailer: SmtpMailer,
        directory: WordPressUserDirectory,
        settings_store: SettingsStore,
        config: NotificationConfig,
        timezone: str,
        *,
        test_mode: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._mailer = mailer
        self._directory = directory
        self._settings_store = settings_store
        self._config = config
        self._timezone = timezone
        self._test_mode = test_mode
        self._sleep = sleep

    def recipients(self) -> list[Recipient]:
        role = self._settings_store.get().notification_role_filter
        roles = [role, *self._config.always_include_roles]
        users = self._directory.find_by_roles(roles)
        recipients = filter_allowed_domains(users, self._config.allowed_domains)
        logger.info(
            "Notification recipients resolved",
            extra={"role_filter": role, "users": len(users), "recipients": len(recipients)},
        )
        return recipients

    def subject_for(self, title: str) -> str:
        return f"{self._config.subject_prefix}: {title}"

    def dispatch(self, announcement: Announcement) -> NotificationResult:
        """Send the announcement to every recipient, one after the other.

        Individual delivery failures are counted in the result. A transport that
        cannot be reached at all raises :class:`NotificationError`.
        """

        if self._test_mode:
            logger.info("Notification skipped in test mode", extra={"title": announcement.title})
            return NotificationResult(errors=[TEST_MODE_MESSAGE])

        self._mailer.verify()
        recipients = self.recipients()
        result = NotificationResult(total=len(recipients))
        if not recipients:
            return result

        body = render_email(announcement, self._settings_store.get(), self._now())
        subject = self.subject_for(announcement.title)
        with self._mailer.session() as session:
            for index, recipient in enumerate(recipients):
                try:
                    session.send(recipient.email, subject, body)
                    result.sent += 1
                except Exception as exc:
                    result.failed += 1
                    result.errors.append(f"{recipient.email}: {exc}")
                    logger.warning("Notification not delivered", extra={"email": recipient.email, "error": str(exc)})
                if index < len(recipients) - 1:
                    self._sleep(self._config.send_delay_s)
        logger.info(
            "Notifications dispatched",
            extra={"sent": result.sent, "failed": result.failed, "total": result.total},
        )
        return result

    def send_test_email(self, to: str) -> None:
        body = TEST_TEMPLATE.format(published_at=html.escape(self._now()))
        with self._mailer.session() as session:
            session.send(to, "Prueba de Sistema de Comunicados", body)

    def _now(self) -> str:
        return format_spanish_date(datetime.now(ZoneInfo(self._timezone)))


__all__ = [
    "Announcement",
    "NotificationDispatcher",
    "NotificationError",
    "format_spanish_date",
    "render_email",
]
