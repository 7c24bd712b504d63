from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Coroutine, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from core.settings import Settings, get_settings

from ..config import AppConfig, apply_settings, load_config
from ..db import init_db, ping
from ..logging import configure_logging
from ..mailer import NotificationError
from ..resources import Resources, build_resources
from ..telegram import TelegramApiError, TelegramClient

console = Console()

app = typer.Typer(help="Publish Word and PDF documents to WordPress")

T = TypeVar("T")


def _load(config_path: Path | None) -> tuple[Settings, AppConfig]:
    settings = get_settings()
    config = apply_settings(load_config(config_path or settings.config_path), settings)
    configure_logging(level=settings.log_level.upper(), structured=settings.log_json)
    return settings, config


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def _telegram(settings: Settings) -> TelegramClient:
    if not settings.telegram_bot_token:
        console.print("[red]TELEGRAM_BOT_TOKEN is not configured[/red]")
        raise typer.Exit(1)
    return TelegramClient(TelegramClient.build_http_client(), settings.telegram_bot_token)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
    reload: bool = typer.Option(False, "--reload"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Run the HTTP API with uvicorn."""

    import uvicorn

    _, cfg = _load(config)
    uvicorn.run("main:app", host=host or cfg.api.host, port=port or cfg.api.port, reload=reload)


@app.command("init-db")
def init_database(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Create the service tables and seed default settings."""

    settings, cfg = _load(config)
    resources = build_resources(settings, cfg)
    try:
        init_db(resources.engine)
        resources.settings_store.seed_defaults()
    finally:
        _run(resources.aclose())
    console.print("[green]Database ready[/green]")


@app.command()
def check(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Check connectivity with the database, WordPress and SMTP."""

    settings, cfg = _load(config)
    resources = build_resources(settings, cfg)
    table = Table(title="Dependency check")
    table.add_column("Dependency")
    table.add_column("Status")
    table.add_column("Detail")
    results = _run(_check_all(resources))
    for name, error in results:
        if error is None:
            table.add_row(name, "[green]ok[/green]", "-")
        else:
            table.add_row(name, "[red]error[/red]", error)
    console.print(table)
    if any(error is not None for _, error in results):
        raise typer.Exit(1)


async def _check_all(resources: Resources) -> list[tuple[str, str | None]]:
    checks = [
        ("database", lambda: asyncio.to_thread(ping, resources.engine)),
        ("wordpress", resources.wordpress.check_connection),
        ("smtp", lambda: asyncio.to_thread(resources.mailer.verify)),
    ]
    results: list[tuple[str, str | None]] = []
    try:
        for name, check in checks:
            try:
                await check()
            except Exception as exc:
                results.append((name, str(exc)))
            else:
                results.append((name, None))
    finally:
        await resources.aclose()
    return results


@app.command()
def history(
    limit: int = typer.Option(10, "--limit", min=1, max=100),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Show the most recent publishing runs."""

    settings, cfg = _load(config)
    resources = build_resources(settings, cfg)
    try:
        entries = resources.history.recent(limit)
    finally:
        _run(resources.aclose())
    table = Table(title="Publishing history")
    for column in ("ID", "Title", "Status", "Post", "Created by", "Created at"):
        table.add_column(column)
    for entry in entries:
        table.add_row(
            str(entry.id),
            entry.title,
            entry.status.value,
            str(entry.wp_post_id or "-"),
            entry.created_by,
            entry.to_payload()["created_at"] or "-",
        )
    console.print(table)


@app.command("send-test-email")
def send_test_email(
    to: str,
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Send the test template to a single address."""

    settings, cfg = _load(config)
    resources = build_resources(settings, cfg)
    try:
        resources.dispatcher.send_test_email(to)
    except NotificationError as exc:
        console.print(f"[red]Mail failed[/red]: {exc}")
        raise typer.Exit(1) from exc
    finally:
        _run(resources.aclose())
    console.print(f"[green]Test email sent to {to}[/green]")


@app.command("set-webhook")
def set_webhook(url: str) -> None:
    """Register the bot webhook URL (https only)."""

    if not url.startswith("https://"):
        console.print("[red]The webhook URL must use https[/red]")
        raise typer.Exit(1)
    settings = get_settings()
    client = _telegram(settings)

    async def _set() -> None:
        try:
            await client.set_webhook(url, settings.telegram_webhook_secret)
        finally:
            await client.aclose()

    try:
        _run(_set())
    except TelegramApiError as exc:
        console.print(f"[red]Telegram refused the webhook[/red]: {exc}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Webhook set[/green]: {url}")


@app.command("webhook-info")
def webhook_info() -> None:
    """Show the webhook currently registered with Telegram."""

    client = _telegram(get_settings())

    async def _info():  # type: ignore[no-untyped-def]
        try:
            return await client.get_webhook_info()
        finally:
            await client.aclose()

    info = _run(_info())
    table = Table(title="Webhook info")
    table.add_column("Field")
    table.add_column("Value")
    for key, value in info.model_dump().items():
        table.add_row(key, "-" if value in (None, "") else str(value))
    console.print(table)


@app.command("get-updates")
def get_updates(limit: int = typer.Option(20, "--limit", min=1, max=100)) -> None:
    """List recent chats that messaged the bot; useful to find a chat id."""

    client = _telegram(get_settings())

    async def _updates() -> list[dict[str, Any]]:
        try:
            return await client.get_updates(limit)
        finally:
            await client.aclose()

    try:
        updates = _run(_updates())
    except TelegramApiError as exc:
        # getUpdates is rejected while a webhook is registered
        console.print(f"[red]Telegram error[/red]: {exc}")
        raise typer.Exit(1) from exc
    table = Table(title="Recent chats")
    table.add_column("Chat ID")
    table.add_column("Type")
    table.add_column("Name")
    seen: set[int] = set()
    for update in updates:
        message = update.get("message") or update.get("channel_post") or {}
        chat = message.get("chat") or {}
        if not chat or chat.get("id") in seen:
            continue
        seen.add(chat["id"])
        name = chat.get("title") or " ".join(
            part for part in (chat.get("first_name"), chat.get("last_name")) if part
        )
        table.add_row(str(chat["id"]), str(chat.get("type", "-")), name or "-")
    console.print(table)


if __name__ == "__main__":
    app()
