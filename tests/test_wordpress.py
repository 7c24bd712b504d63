import asyncio
import json

import httpx
import pytest

from core.docpress.models import ImageArtifact
from core.docpress.rewriter import placeholder_for
from core.docpress.wordpress import CmsApiError, PostDraft

from .conftest import png_bytes


def _artifact(name: str) -> ImageArtifact:
    return ImageArtifact(
        id=name,
        file_name=name,
        content_type="image/png",
        buffer=png_bytes(),
        placeholder_reference=placeholder_for(name),
    )


def test_upload_partitions_successes_and_failures(wordpress, fake_wp):
    fake_wp.failing_uploads = {"bad-"}
    images = [_artifact("ok-1.png"), _artifact("bad-2.png"), _artifact("ok-3.png"), _artifact("bad-4.png")]

    outcome = asyncio.run(wordpress.upload_images(images))

    assert len(outcome.successful) + len(outcome.failed) == len(images)
    assert [item.local_image_id for item in outcome.successful] == ["ok-1.png", "ok-3.png"]
    assert {item.file_name for item in outcome.failed} == {"bad-2.png", "bad-4.png"}
    assert all("Disk full" in item.error for item in outcome.failed)
    assert outcome.featured_media_id == outcome.successful[0].remote_media_id


def test_upload_sends_alt_text(wordpress, fake_wp):
    asyncio.run(wordpress.upload_images([_artifact("ok-1.png")]))
    assert b"Imagen 1 del documento" in fake_wp.uploads[0]


def test_upload_optimizes_when_enabled(wordpress, fake_wp, config):
    config.images.optimization_enabled = True
    config.images.max_width = 4
    config.images.max_height = 4
    big = ImageArtifact(
        id="big",
        file_name="big.png",
        content_type="image/png",
        buffer=png_bytes(64, 64),
        placeholder_reference=placeholder_for("big.png"),
    )
    outcome = asyncio.run(wordpress.upload_images([big]))
    assert len(outcome.successful) == 1
    assert big.buffer not in fake_wp.uploads[0]


def test_create_post_always_sends_featured_media(wordpress, fake_wp):
    post = asyncio.run(wordpress.create_post(PostDraft(title="Aviso", content="<p>x</p>")))
    assert post.title == "Aviso"
    assert post.featured_media is None
    assert "featured_media" in fake_wp.posts[0]
    assert fake_wp.posts[0]["status"] == "draft"


def test_error_response_raises_with_upstream_details(wordpress, fake_wp):
    fake_wp.post_error = 500
    with pytest.raises(CmsApiError) as exc:
        asyncio.run(wordpress.create_post(PostDraft(title="Aviso", content="")))
    assert exc.value.status_code == 500
    assert str(exc.value) == "Post rejected"


def test_unreachable_site_raises(config):
    from core.docpress.wordpress import WordPressClient

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = WordPressClient(
        httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url="https://wp.test/wp-json/wp/v2"),
        config,
    )
    with pytest.raises(CmsApiError):
        asyncio.run(client.check_connection())


def test_trash_response_is_read_as_deleted(config):
    from core.docpress.wordpress import WordPressClient

    def trash(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=json.dumps({"id": 9, "status": "trash"}))

    client = WordPressClient(
        httpx.AsyncClient(transport=httpx.MockTransport(trash), base_url="https://wp.test/wp-json/wp/v2"),
        config,
    )
    record = asyncio.run(client.delete_post(9, force=False))
    assert record.deleted is True


def test_get_post_and_media_unwrap_rendered_fields(config):
    from core.docpress.wordpress import WordPressClient

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/posts/5"):
            return httpx.Response(
                200,
                json={"id": 5, "title": {"rendered": "Aviso"}, "status": "publish", "featured_media": 0},
            )
        return httpx.Response(
            200, json={"id": 8, "source_url": "https://wp.test/a.png", "guid": {"rendered": "https://wp.test/?a"}}
        )

    client = WordPressClient(
        httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://wp.test/wp-json/wp/v2"),
        config,
    )
    post = asyncio.run(client.get_post(5))
    media = asyncio.run(client.get_media(8))
    assert (post.title, post.featured_media) == ("Aviso", None)
    assert media.guid == "https://wp.test/?a"
