import asyncio

from core.docpress.bot import HELP_TEXT
from core.docpress.models import HistoryStatus

from .conftest import WEBHOOK_SECRET, make_docx

WEBHOOK = "/api/v1/telegram/webhook"


def _message(**fields):
    base = {"message_id": 10, "chat": {"id": 42, "type": "private"}, "from": {"id": 7}}
    base.update(fields)
    return {"update_id": 1, "message": base}


def test_webhook_requires_secret(client):
    assert client.post(WEBHOOK, json=_message(text="/help")).status_code == 401
    wrong = client.post(WEBHOOK, json=_message(text="/help"), headers={"X-Telegram-Bot-Api-Secret-Token": "nope"})
    assert wrong.status_code == 403


def test_webhook_accepts_bearer_secret(client):
    response = client.post(
        WEBHOOK, json=_message(text="/status"), headers={"Authorization": f"Bearer {WEBHOOK_SECRET}"}
    )
    assert response.status_code == 200
    assert response.json()["result"]["action"] == "status"


def test_help_command_replies(client, fake_telegram):
    response = client.post(
        WEBHOOK, json=_message(text="/help"), headers={"X-Telegram-Bot-Api-Secret-Token": WEBHOOK_SECRET}
    )
    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert fake_telegram.texts() == [HELP_TEXT]
    method, payload = fake_telegram.calls[0]
    assert payload["chat_id"] == 42
    assert payload["reply_to_message_id"] == 10


def test_unknown_command(resources, fake_telegram):
    outcome = asyncio.run(resources.bot.process_update(_message(text="/borrar")))
    assert outcome.action == "unknown_command"
    assert "Comando no reconocido" in fake_telegram.texts()[0]


def test_non_docx_document_is_rejected(resources, fake_telegram):
    update = _message(document={"file_id": "f1", "file_name": "foto.jpg", "mime_type": "image/jpeg", "file_size": 10})
    outcome = asyncio.run(resources.bot.process_update(update))
    assert outcome.error == "INVALID_FILE_TYPE"
    assert fake_telegram.texts() == ["❌ Solo se aceptan archivos .docx."]


def test_oversized_document_is_rejected(resources, fake_telegram, config):
    size = config.runtime.max_file_size_mb * 1024 * 1024 + 1
    update = _message(document={"file_id": "f1", "file_name": "grande.docx", "file_size": size})
    outcome = asyncio.run(resources.bot.process_update(update))
    assert outcome.error == "FILE_TOO_LARGE"
    assert not any(name == "getFile" for name, _ in fake_telegram.calls)


def test_document_is_published_as_draft(resources, fake_telegram, fake_wp):
    fake_telegram.document = make_docx(["Desde Telegram"])
    update = _message(
        document={
            "file_id": "f1",
            "file_name": "Circular.docx",
            "mime_type": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "file_size": 2048,
        }
    )

    outcome = asyncio.run(resources.bot.process_update(update))

    assert outcome.action == "published"
    entry = resources.history.find_by_id(outcome.history_id)
    assert entry.status is HistoryStatus.COMPLETED
    assert entry.created_by == "telegram_7"
    assert entry.telegram_chat_id == "42"
    assert entry.title == "Circular"
    assert fake_wp.posts[0]["status"] == "draft"
    edits = fake_telegram.texts("editMessageText")
    assert edits[-1].startswith("✅ ¡Documento procesado exitosamente!")


def test_word_mime_without_extension_is_published(resources, fake_telegram, fake_wp):
    fake_telegram.document = make_docx(["Sin extension"])
    update = _message(
        document={
            "file_id": "f1",
            "file_name": "Circular",
            "mime_type": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "file_size": 2048,
        }
    )

    outcome = asyncio.run(resources.bot.process_update(update))

    assert outcome.action == "published"
    entry = resources.history.find_by_id(outcome.history_id)
    assert entry.status is HistoryStatus.COMPLETED
    assert entry.file_name == "Circular.docx"
    assert entry.title == "Circular"
    assert len(fake_wp.posts) == 1


def test_failed_document_reports_error(resources, fake_telegram, fake_wp):
    fake_telegram.document = make_docx(["Desde Telegram"])
    fake_wp.post_error = 500
    update = _message(document={"file_id": "f1", "file_name": "Circular.docx", "file_size": 2048})

    outcome = asyncio.run(resources.bot.process_update(update))

    assert outcome.action == "failed"
    assert fake_telegram.texts()[-1].startswith("❌ Error al procesar el documento")
    failed = resources.history.recent(1)[0]
    assert failed.status is HistoryStatus.FAILED
