from __future__ import annotations

import smtplib
import ssl
from contextlib import contextmanager
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from typing import Callable, Iterator, Protocol


class NotificationError(RuntimeError):
    """Raised when the mail transport cannot be reached or authenticated."""


class MailSession(Protocol):
    def send(self, to: str, subject: str, html: str) -> None:  # pragma: no cover - interface
        ...


@dataclass(slots=True)
class SmtpConfig:
    host: str
    port: int = 587
    user: str = ""
    password: str = ""
    secure: bool = False
    sender: str = ""
    sender_name: str = "Junta de Condominio"
    timeout_s: float = 60.0

    @property
    def implicit_tls(self) -> bool:
        return self.secure or self.port == 465


class _SmtpSession:
    def __init__(self, client: smtplib.SMTP, config: SmtpConfig) -> None:
        self._client = client
        self._config = config

    def send(self, to: str, subject: str, html: str) -> None:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = formataddr((self._config.sender_name, self._config.sender))
        message["To"] = to
        message["Date"] = formatdate(localtime=True)
        message["Message-ID"] = make_msgid()
        message.attach(MIMEText(html, "html", "utf-8"))
        self._client.sendmail(self._config.sender, [to], message.as_string())


class SmtpMailer:
    """SMTP transport opened once per dispatch; safe to share between requests."""

    def __init__(self, config: SmtpConfig, factory: Callable[..., smtplib.SMTP] | None = None) -> None:
        self._config = config
        self._factory = factory

    @property
    def config(self) -> SmtpConfig:
        return self._config

    @property
    def configured(self) -> bool:
        return bool(self._config.host and self._config.user and self._config.password)

    def _connect(self) -> smtplib.SMTP:
        config = self._config
        if not self.configured:
            raise NotificationError("SMTP is not configured")
        client: smtplib.SMTP | None = None
        try:
            if self._factory is not None:
                client = self._factory(config.host, config.port, timeout=config.timeout_s)
            elif config.implicit_tls:
                client = smtplib.SMTP_SSL(
                    config.host, config.port, timeout=config.timeout_s, context=ssl.create_default_context()
                )
            else:
                client = smtplib.SMTP(config.host, config.port, timeout=config.timeout_s)
                client.starttls(context=ssl.create_default_context())
            client.login(config.user, config.password)
        except (smtplib.SMTPException, OSError) as exc:
            if client is not None:
                _quit(client)
            raise NotificationError(f"SMTP connection failed: {exc}") from exc
        return client

    def verify(self) -> None:
        client = self._connect()
        _quit(client)

    @contextmanager
    def session(self) -> Iterator[MailSession]:
        client = self._connect()
        try:
            yield _SmtpSession(client, self._config)
        finally:
            _quit(client)


def _quit(client: smtplib.SMTP) -> None:
    try:
        client.quit()
    except (smtplib.SMTPException, OSError):
        client.close()


__all__ = ["MailSession", "NotificationError", "SmtpConfig", "SmtpMailer"]
