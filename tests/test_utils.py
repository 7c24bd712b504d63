from datetime import datetime

from core.docpress.utils import (
    format_processing_time,
    generate_run_id,
    local_now,
    size_within_limit,
    strip_extension,
)


def test_strip_extension() -> None:
    assert strip_extension("Aviso.docx") == "Aviso"
    assert strip_extension("acta.final.docx") == "acta.final"
    assert strip_extension(None, "Documento") == "Documento"


def test_generate_run_id_unique() -> None:
    first = generate_run_id("test")
    second = generate_run_id("test")
    assert first != second
    assert first.startswith("test-")


def test_size_within_limit_is_inclusive() -> None:
    assert size_within_limit(b"x" * 1024 * 1024, 1)
    assert not size_within_limit(b"x" * (1024 * 1024 + 1), 1)


def test_local_now_is_naive_wall_clock() -> None:
    now = local_now("America/Caracas")
    assert isinstance(now, datetime)
    assert now.tzinfo is None
    assert now.microsecond == 0


def test_format_processing_time() -> None:
    assert format_processing_time(1234.4) == "1234ms"
