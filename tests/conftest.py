from __future__ import annotations

import io
import json
import smtplib
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
import pytest
import sqlalchemy as sa
from PIL import Image

from core.docpress.config import AppConfig
from core.docpress.db import create_db_engine, init_db
from core.docpress.mailer import SmtpConfig, SmtpMailer
from core.docpress.resources import build_resources
from core.docpress.telegram import TelegramClient
from core.docpress.wordpress import WordPressClient
from core.settings import Settings

WP_SITE = "https://wp.test"
BOT_TOKEN = "123:abc"
WEBHOOK_SECRET = "hook-secret"
API_KEY = "test-key"

_W = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
_R = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
_WP = "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing"
_A = "http://schemas.openxmlformats.org/drawingml/2006/main"
_PIC = "http://schemas.openxmlformats.org/drawingml/2006/picture"
_IMAGE_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/image"


def png_bytes(width: int = 8, height: int = 8, color: str = "red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def _drawing(rel_id: str, index: int) -> str:
    return (
        "<w:p><w:r><w:drawing>"
        f'<wp:inline><wp:docPr id="{index}" name="Picture {index}" descr="Figura {index}"/>'
        f'<a:graphic><a:graphicData uri="{_PIC}"><pic:pic><pic:blipFill>'
        f'<a:blip r:embed="{rel_id}"/>'
        "</pic:blipFill></pic:pic></a:graphicData></a:graphic>"
        "</wp:inline></w:drawing></w:r></w:p>"
    )


def make_docx(paragraphs: list[str] | None = None, images: list[bytes] | None = None) -> bytes:
    """Build a minimal Word package with optional inline PNG images."""

    paragraphs = paragraphs if paragraphs is not None else ["Hola"]
    images = images or []
    body = "".join(f"<w:p><w:r><w:t>{text}</w:t></w:r></w:p>" for text in paragraphs)
    body += "".join(_drawing(f"rId{100 + index}", index + 1) for index in range(len(images)))
    document = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<w:document xmlns:w="{_W}" xmlns:r="{_R}" xmlns:wp="{_WP}" xmlns:a="{_A}" xmlns:pic="{_PIC}">'
        f"<w:body>{body}</w:body></w:document>"
    )
    relationships = "".join(
        f'<Relationship Id="rId{100 + index}" Type="{_IMAGE_REL}" Target="media/image{index + 1}.png"/>'
        for index in range(len(images))
    )
    output = io.BytesIO()
    with zipfile.ZipFile(output, "w") as archive:
        archive.writestr(
            "[Content_Types].xml",
            '<?xml version="1.0" encoding="UTF-8"?>'
            '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
            '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
            '<Default Extension="xml" ContentType="application/xml"/>'
            '<Default Extension="png" ContentType="image/png"/>'
            '<Override PartName="/word/document.xml" '
            'ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>'
            "</Types>",
        )
        archive.writestr(
            "_rels/.rels",
            '<?xml version="1.0" encoding="UTF-8"?>'
            '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
            '<Relationship Id="rId1" '
            'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" '
            'Target="word/document.xml"/>'
            "</Relationships>",
        )
        archive.writestr(
            "word/_rels/document.xml.rels",
            '<?xml version="1.0" encoding="UTF-8"?>'
            '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
            f"{relationships}</Relationships>",
        )
        archive.writestr("word/document.xml", document)
        for index, image in enumerate(images):
            archive.writestr(f"word/media/image{index + 1}.png", image)
    return output.getvalue()


@dataclass
class FakeWordPress:
    """In-memory stand-in for the WordPress REST API."""

    failing_uploads: set[str] = field(default_factory=set)
    missing_media: set[int] = field(default_factory=set)
    post_error: int | None = None
    uploads: list[bytes] = field(default_factory=list)
    posts: list[dict[str, Any]] = field(default_factory=list)
    deleted_posts: list[int] = field(default_factory=list)
    deleted_media: list[int] = field(default_factory=list)
    next_media_id: int = 500
    next_post_id: int = 100

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/wp-json/wp/v2")
        if request.method == "GET" and path in {"", "/"}:
            return httpx.Response(200, json={"namespace": "wp/v2"})
        if request.method == "POST" and path == "/media":
            content = request.content
            if any(marker.encode() in content for marker in self.failing_uploads):
                return httpx.Response(500, json={"code": "upload_error", "message": "Disk full"})
            self.uploads.append(content)
            self.next_media_id += 1
            media_id = self.next_media_id
            return httpx.Response(
                201,
                json={
                    "id": media_id,
                    "source_url": f"{WP_SITE}/wp-content/uploads/{media_id}.png",
                    "title": {"rendered": f"media {media_id}"},
                },
            )
        if request.method == "POST" and path == "/posts":
            if self.post_error is not None:
                return httpx.Response(self.post_error, json={"code": "rest_error", "message": "Post rejected"})
            body = json.loads(request.content)
            self.next_post_id += 1
            post = {
                "id": self.next_post_id,
                "title": {"rendered": body["title"]},
                "content": {"rendered": body["content"]},
                "status": body["status"],
                "link": f"{WP_SITE}/?p={self.next_post_id}",
                "featured_media": body.get("featured_media") or 0,
                "author": body.get("author", 1),
            }
            self.posts.append({**body, "id": self.next_post_id})
            return httpx.Response(201, json=post)
        if request.method == "DELETE" and path.startswith("/media/"):
            media_id = int(path.rsplit("/", 1)[1])
            if media_id in self.missing_media:
                return httpx.Response(404, json={"code": "rest_post_invalid_id", "message": "Invalid post ID."})
            self.deleted_media.append(media_id)
            return httpx.Response(200, json={"deleted": True, "previous": {"id": media_id}})
        if request.method == "DELETE" and path.startswith("/posts/"):
            post_id = int(path.rsplit("/", 1)[1])
            self.deleted_posts.append(post_id)
            return httpx.Response(200, json={"deleted": True, "previous": {"id": post_id}})
        return httpx.Response(404, json={"code": "rest_no_route", "message": "No route was found"})


@dataclass
class FakeTelegram:
    """Records Bot API calls and serves one downloadable document."""

    document: bytes = b""
    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith(f"/file/bot{BOT_TOKEN}/"):
            return httpx.Response(200, content=self.document)
        method = path.rsplit("/", 1)[1]
        payload = json.loads(request.content) if request.content else {}
        self.calls.append((method, payload))
        if method == "sendMessage":
            return httpx.Response(200, json={"ok": True, "result": {"message_id": len(self.calls), "date": 0}})
        if method == "getFile":
            return httpx.Response(
                200,
                json={"ok": True, "result": {"file_id": payload["file_id"], "file_path": "documents/file_1.docx"}},
            )
        if method == "getWebhookInfo":
            return httpx.Response(200, json={"ok": True, "result": {"url": "https://hooks.test/telegram"}})
        return httpx.Response(200, json={"ok": True, "result": True})

    def texts(self, method: str = "sendMessage") -> list[str]:
        return [payload.get("text", "") for name, payload in self.calls if name == method]


class FakeSMTP:
    """Duck-typed ``smtplib.SMTP`` that stores messages instead of sending them."""

    def __init__(self, outbox: list[tuple[str, str]], refuse_login: bool = False) -> None:
        self.outbox = outbox
        self.refuse_login = refuse_login
        self.closed = False

    def login(self, user: str, password: str) -> None:
        if self.refuse_login:
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

    def sendmail(self, sender: str, to: list[str], message: str) -> dict[str, Any]:
        if to[0].startswith("rebota"):
            raise smtplib.SMTPRecipientsRefused({to[0]: (550, b"mailbox unavailable")})
        self.outbox.append((to[0], message))
        return {}

    def quit(self) -> None:
        self.closed = True

    def close(self) -> None:
        self.closed = True


def smtp_factory(outbox: list[tuple[str, str]], refuse_login: bool = False):  # type: ignore[no-untyped-def]
    def factory(host: str, port: int, timeout: float | None = None) -> FakeSMTP:
        return FakeSMTP(outbox, refuse_login=refuse_login)

    return factory


def add_wp_user(engine: sa.Engine, user_id: int, email: str, role: str, name: str = "") -> None:
    capabilities = f'a:1:{{s:{len(role)}:"{role}";b:1;}}'
    with engine.begin() as connection:
        connection.execute(
            sa.text(
                "INSERT INTO wp_users (ID, user_login, user_email, display_name) "
                "VALUES (:id, :login, :email, :name)"
            ),
            {"id": user_id, "login": f"user{user_id}", "email": email, "name": name or f"User {user_id}"},
        )
        connection.execute(
            sa.text(
                "INSERT INTO wp_usermeta (user_id, meta_key, meta_value) VALUES (:id, 'wp_capabilities', :caps)"
            ),
            {"id": user_id, "caps": capabilities},
        )


@pytest.fixture()
def config(tmp_path: Path) -> AppConfig:
    cfg = AppConfig()
    cfg.runtime.temp_dir = tmp_path / "temp"
    cfg.notifications.send_delay_s = 0.0
    return cfg


@pytest.fixture()
def engine() -> sa.Engine:
    db = create_db_engine("sqlite://")
    init_db(db)
    with db.begin() as connection:
        connection.execute(
            sa.text(
                "CREATE TABLE wp_users (ID INTEGER PRIMARY KEY, user_login TEXT, user_email TEXT, display_name TEXT)"
            )
        )
        connection.execute(
            sa.text("CREATE TABLE wp_usermeta (umeta_id INTEGER PRIMARY KEY, user_id INTEGER, meta_key TEXT, meta_value TEXT)")
        )
    yield db
    db.dispose()


@pytest.fixture()
def fake_wp() -> FakeWordPress:
    return FakeWordPress()


@pytest.fixture()
def fake_telegram() -> FakeTelegram:
    return FakeTelegram()


@pytest.fixture()
def outbox() -> list[tuple[str, str]]:
    return []


@pytest.fixture()
def wordpress(fake_wp: FakeWordPress, config: AppConfig) -> WordPressClient:
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(fake_wp), base_url=f"{WP_SITE}/wp-json/wp/v2"
    )
    return WordPressClient(http, config)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        wp_url=WP_SITE,
        wp_user="editor",
        wp_app_password="app-pass",
        database_url="sqlite://",
        admin_api_key=API_KEY,
        telegram_bot_token=BOT_TOKEN,
        telegram_webhook_secret=WEBHOOK_SECRET,
        smtp_host="smtp.test",
        smtp_user="mailer",
        smtp_pass="secret",
        smtp_test_mode=False,
    )


@pytest.fixture()
def resources(settings, config, engine, wordpress, fake_telegram, outbox):  # type: ignore[no-untyped-def]
    telegram = TelegramClient(
        httpx.AsyncClient(transport=httpx.MockTransport(fake_telegram), base_url="https://api.telegram.org"),
        BOT_TOKEN,
    )
    mailer = SmtpMailer(
        SmtpConfig(host="smtp.test", user="mailer", password="secret", sender="comunicados@bonaventurecclub.com"),
        factory=smtp_factory(outbox),
    )
    return build_resources(
        settings, config, engine=engine, wordpress=wordpress, telegram=telegram, mailer=mailer
    )


@pytest.fixture()
def client(settings, config, resources):  # type: ignore[no-untyped-def]
    from fastapi.testclient import TestClient

    from api.app import create_app

    app = create_app(settings=settings, config=config, resources=resources)
    return TestClient(app)
