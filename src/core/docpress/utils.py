"""Run directories, timestamps and small formatting helpers."""

from __future__ import annotations

import shutil
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePath
from zoneinfo import ZoneInfo

from .config import AppConfig


@dataclass(slots=True)
class RunPaths:
    """Scratch directory holding the extracted artifacts of one run."""

    run_id: str
    base_dir: Path


def generate_run_id(prefix: str = "run") -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def ensure_run_paths(config: AppConfig, run_id: str) -> RunPaths:
    run_dir = config.runtime.temp_dir / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    return RunPaths(run_id=run_id, base_dir=run_dir)


def cleanup_run_paths(run_paths: RunPaths) -> None:
    shutil.rmtree(run_paths.base_dir, ignore_errors=True)


def strip_extension(filename: str | None, default: str = "") -> str:
    """Return *filename* without its last extension, e.g. ``Aviso.docx`` -> ``Aviso``."""

    if not filename:
        return default
    stem = PurePath(filename).stem
    return stem or default


def size_within_limit(payload: bytes, max_mb: int) -> bool:
    return len(payload) <= max_mb * 1024 * 1024


def local_now(timezone: str) -> datetime:
    """Wall-clock time in *timezone*, without tzinfo, as stored in history rows."""

    return datetime.now(ZoneInfo(timezone)).replace(tzinfo=None, microsecond=0)


def format_processing_time(elapsed_ms: float) -> str:
    return f"{int(round(elapsed_ms))}ms"


__all__ = [
    "RunPaths",
    "cleanup_run_paths",
    "ensure_run_paths",
    "format_processing_time",
    "generate_run_id",
    "local_now",
    "size_within_limit",
    "strip_extension",
]
