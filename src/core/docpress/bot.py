"""Telegram update handling: documents go through the publishing pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import Any

from .config import AppConfig
from .core import PublishingService
from .detection import is_docx_mime
from .logging import get_logger
from .models import PipelineStage, PublishRequest
from .telegram import TelegramApiError, TelegramClient
from .utils import strip_extension

logger = get_logger(__name__)

DEFAULT_TITLE = "Documento de Telegram"

HELP_TEXT = (
    "🤖 Bot de publicación de documentos\n\n"
    "Envíame un archivo .docx y lo convertiré en un borrador de WordPress.\n\n"
    "Comandos disponibles:\n"
    "/help - Muestra esta ayuda\n"
    "/status - Estado del servicio"
)
STATUS_TEXT = "✅ El servicio está operativo.\nTamaño máximo de archivo: {max_mb}MB"
UNKNOWN_COMMAND_TEXT = "❓ Comando no reconocido. Usa /help para ver los comandos disponibles."
NOT_DOCX_TEXT = "❌ Solo se aceptan archivos .docx."
TOO_LARGE_TEXT = "❌ El archivo es demasiado grande. Tamaño máximo permitido: {max_mb}MB"
NO_CONTENT_TEXT = "Por favor, envía un archivo .docx para procesar."
DOWNLOAD_FAILED_TEXT = "❌ Error al descargar el archivo. Por favor, intenta nuevamente."
FAILURE_TEXT = "❌ Error al procesar el documento: {error}"

STAGE_TEXT: dict[PipelineStage, str] = {
    PipelineStage.CONVERTING: "🔄 Convirtiendo documento a HTML...",
    PipelineStage.UPLOADING: "☁️ Subiendo imágenes a WordPress...",
    PipelineStage.PUBLISHING: "📝 Creando post en WordPress...",
}

SUCCESS_TEXT = (
    "✅ ¡Documento procesado exitosamente!\n\n"
    "📄 Título: {title}\n"
    "🔗 Enlace: {link}\n"
    "📊 Estado: {status}\n"
    "🖼️ Imágenes: {images}\n\n"
    "El post ha sido creado en WordPress como borrador."
)


@dataclass(slots=True)
class UpdateOutcome:
    handled: bool
    action: str
    history_id: int | None = None
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "handled": self.handled,
            "action": self.action,
            "history_id": self.history_id,
            "error": self.error,
        }


class TelegramBot:
    def __init__(self, client: TelegramClient, service: PublishingService, config: AppConfig) -> None:
        self._client = client
        self._service = service
        self._config = config

    async def process_update(self, update: dict[str, Any]) -> UpdateOutcome:
        message = update.get("message") or update.get("channel_post")
        if not isinstance(message, dict):
            return UpdateOutcome(handled=False, action="ignored")
        if message.get("document"):
            return await self.process_document(message)
        if message.get("text"):
            return await self.process_text(message)
        await self._reply(message, NO_CONTENT_TEXT)
        return UpdateOutcome(handled=True, action="no_content")

    async def process_text(self, message: dict[str, Any]) -> UpdateOutcome:
        text = str(message.get("text", "")).strip()
        command = text.split()[0].split("@")[0].lower() if text.startswith("/") else ""
        if command in {"/start", "/help"}:
            reply, action = HELP_TEXT, "help"
        elif command == "/status":
            reply, action = STATUS_TEXT.format(max_mb=self._config.runtime.max_file_size_mb), "status"
        elif command:
            reply, action = UNKNOWN_COMMAND_TEXT, "unknown_command"
        else:
            reply, action = HELP_TEXT, "text"
        await self._reply(message, reply)
        return UpdateOutcome(handled=True, action=action)

    async def process_document(self, message: dict[str, Any]) -> UpdateOutcome:
        document: dict[str, Any] = message["document"]
        file_name = document.get("file_name") or "documento.docx"
        chat_id = message["chat"]["id"]
        message_id = message.get("message_id")
        sender = message.get("from") or message.get("sender_chat") or {}
        max_mb = self._config.runtime.max_file_size_mb

        has_extension = PurePath(file_name).suffix.lower() == ".docx"
        if not (has_extension or is_docx_mime(document.get("mime_type"))):
            await self._reply(message, NOT_DOCX_TEXT)
            return UpdateOutcome(handled=True, action="rejected", error="INVALID_FILE_TYPE")
        if int(document.get("file_size") or 0) > max_mb * 1024 * 1024:
            await self._reply(message, TOO_LARGE_TEXT.format(max_mb=max_mb))
            return UpdateOutcome(handled=True, action="rejected", error="FILE_TOO_LARGE")

        progress = await self._client.send_message(chat_id, "📄 Procesando documento... Por favor, espera.", message_id)
        try:
            payload = await self._client.download_file(document["file_id"])
        except TelegramApiError as exc:
            logger.error("Telegram download failed", extra={"chat_id": chat_id, "error": str(exc)})
            await self._edit(chat_id, progress.message_id, DOWNLOAD_FAILED_TEXT)
            return UpdateOutcome(handled=True, action="download_failed", error=str(exc))

        async def on_stage(stage: PipelineStage) -> None:
            text = STAGE_TEXT.get(stage)
            if text:
                await self._edit(chat_id, progress.message_id, text)

        request = PublishRequest(
            title=strip_extension(file_name, DEFAULT_TITLE)[:255],
            payload=payload,
            file_name=file_name if has_extension else f"{strip_extension(file_name, 'documento')}.docx",
            status="draft",
            created_by=f"telegram_{sender.get('id', 'unknown')}",
            telegram_chat_id=str(chat_id),
            telegram_message_id=str(message_id) if message_id is not None else None,
        )
        try:
            result = await self._service.publish_document(request, on_stage=on_stage)
        except Exception as exc:
            logger.error("Telegram document failed", extra={"chat_id": chat_id, "error": str(exc)})
            await self._reply(message, FAILURE_TEXT.format(error=exc))
            return UpdateOutcome(handled=True, action="failed", error=str(exc))

        await self._edit(
            chat_id,
            progress.message_id,
            SUCCESS_TEXT.format(
                title=result.title, link=result.link, status=result.status, images=result.images_count
            ),
        )
        return UpdateOutcome(handled=True, action="published", history_id=result.history_id)

    async def _reply(self, message: dict[str, Any], text: str) -> None:
        try:
            await self._client.send_message(message["chat"]["id"], text, message.get("message_id"))
        except TelegramApiError as exc:
            logger.warning("Telegram reply failed", extra={"error": str(exc)})

    async def _edit(self, chat_id: int | str, message_id: int, text: str) -> None:
        try:
            await self._client.edit_message(chat_id, message_id, text)
        except TelegramApiError as exc:
            logger.warning("Telegram progress update failed", extra={"error": str(exc)})


__all__ = ["HELP_TEXT", "TelegramBot", "UpdateOutcome"]
