import io

import pytest
from PIL import Image

from core.docpress.config import ImageConfig
from core.docpress.images import image_extension, optimize_image

from .conftest import png_bytes


@pytest.mark.parametrize(
    ("content_type", "extension"),
    [
        ("image/jpeg", ".jpg"),
        ("image/jpg", ".jpg"),
        ("image/png", ".png"),
        ("image/gif", ".gif"),
        ("image/webp", ".webp"),
        ("image/bmp", ".bmp"),
        ("image/tiff", ".tiff"),
        ("image/x-emf", ".jpg"),
        (None, ".jpg"),
    ],
)
def test_image_extension(content_type, extension):
    assert image_extension(content_type) == extension


def test_optimize_downscales_within_bounds():
    config = ImageConfig(optimization_enabled=True, max_width=100, max_height=50)
    result = optimize_image(png_bytes(400, 100), "image/png", config)
    assert result.content_type == "image/png"
    with Image.open(io.BytesIO(result.buffer)) as image:
        assert image.width <= 100
        assert image.height <= 50
        assert image.width / image.height == pytest.approx(4, rel=0.05)


def test_optimize_converts_unsupported_formats_to_jpeg():
    buffer = io.BytesIO()
    Image.new("RGB", (10, 10), "blue").save(buffer, format="BMP")
    result = optimize_image(buffer.getvalue(), "image/bmp", ImageConfig())
    assert result.content_type == "image/jpeg"
    assert result.buffer[:2] == b"\xff\xd8"


def test_optimize_returns_original_on_garbage():
    garbage = b"definitely not an image"
    result = optimize_image(garbage, "image/png", ImageConfig())
    assert result.buffer == garbage
    assert result.content_type == "image/png"
