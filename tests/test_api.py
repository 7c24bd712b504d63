import sqlalchemy as sa

from core.docpress.models import HistoryStatus

from .conftest import API_KEY, add_wp_user, make_docx

DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
HEADERS = {"X-API-KEY": API_KEY}


def _upload(client, payload: bytes, name: str = "Aviso.docx", content_type: str = DOCX_TYPE, **form):
    return client.post(
        "/api/v1/docx/upload",
        headers=HEADERS,
        files={"file": (name, payload, content_type)},
        data=form,
    )


def test_health_simple_needs_no_key(client):
    response = client.get("/api/v1/health/simple")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Trace-Id" in response.headers


def test_health_reports_dependencies(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    checks = response.json()["checks"]
    assert checks["database"]["status"] == "healthy"
    assert checks["wordpress"]["status"] == "healthy"
    assert checks["telegram"]["status"] == "enabled"


def test_missing_api_key_is_401(client):
    response = client.get("/api/v1/posts/history")
    assert response.status_code == 401
    assert response.json()["detail"] == "API_KEY_REQUIRED"


def test_wrong_api_key_is_403(client):
    response = client.get("/api/v1/posts/history", headers={"X-API-KEY": "nope"})
    assert response.status_code == 403
    assert response.json()["detail"] == "API_KEY_INVALID"


def test_upload_creates_draft_from_file_name(client, resources, fake_wp):
    response = _upload(client, make_docx(["Aviso a los residentes"]))

    assert response.status_code == 201
    body = response.json()
    assert body["title"] == "Aviso"
    assert body["status"] == "draft"
    assert body["images_count"] == 0
    assert body["featured_media"] is None
    assert body["trace_id"]
    entry = resources.history.find_by_id(body["history_id"])
    assert entry.status is HistoryStatus.COMPLETED
    assert entry.created_by == "api_user"
    assert fake_wp.posts[0]["title"] == "Aviso"


def test_upload_validation_errors(client):
    assert _upload(client, b"x", name="notas.txt", content_type="text/plain").json()["detail"] == "INVALID_FILE_TYPE"
    assert _upload(client, b"").json()["detail"] == "EMPTY_FILE"
    assert _upload(client, make_docx(), status="pending").json()["detail"] == "INVALID_STATUS"
    assert _upload(client, make_docx(), title="   ").json()["detail"] == "INVALID_TITLE"


def test_upload_accepts_docx_mime_without_extension(client, fake_wp):
    response = _upload(client, make_docx(["Memo"]), name="memo")
    assert response.status_code == 201
    assert response.json()["title"] == "memo"


def test_upload_size_limit(client, config):
    config.runtime.max_file_size_mb = 1
    response = _upload(client, b"PK\x03\x04" + b"0" * (1024 * 1024))
    assert response.status_code == 413
    assert response.json()["detail"] == "SIZE_LIMIT"


def test_upload_cms_error_is_502_and_recorded(client, resources, fake_wp):
    fake_wp.post_error = 500
    response = _upload(client, make_docx(), title="Fallido")
    assert response.status_code == 502
    assert response.json()["detail"] == "CMS_ERROR"

    history = client.get("/api/v1/posts/history", params={"status": "failed"}, headers=HEADERS).json()
    assert history["pagination"]["total"] == 1
    assert history["records"][0]["title"] == "Fallido"


def test_history_search_on_empty_table(client):
    response = client.get("/api/v1/posts/history", params={"status": "failed"}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json() == {"records": [], "pagination": {"page": 1, "limit": 20, "total": 0, "pages": 0}}


def test_history_rejects_bad_filters(client):
    bad_status = client.get("/api/v1/posts/history", params={"status": "lost"}, headers=HEADERS)
    assert bad_status.json()["detail"] == "INVALID_STATUS"
    bad_range = client.get(
        "/api/v1/posts/history",
        params={"start_date": "2025-02-01", "end_date": "2025-01-01"},
        headers=HEADERS,
    )
    assert bad_range.status_code == 400
    assert bad_range.json()["detail"] == "INVALID_DATE_RANGE"


def test_history_entry_lookup(client, resources):
    entry_id = resources.history.create({"title": "Aviso", "created_by": "api_user"})
    assert client.get(f"/api/v1/posts/history/{entry_id}", headers=HEADERS).json()["id"] == entry_id
    assert client.get("/api/v1/posts/history/9999", headers=HEADERS).status_code == 404


def test_delete_post_with_partial_media_failures(client, resources, fake_wp):
    entry_id = resources.history.create({"title": "Aviso", "created_by": "api_user"})
    resources.history.update(entry_id, {"media_ids": [11, 12, 13]})
    resources.history.mark_completed(entry_id, 77, {"id": 77})
    fake_wp.missing_media = {12, 13}

    response = client.delete("/api/v1/posts/77", params={"delete_media": "true"}, headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["wp_deleted"] is True
    assert body["media_deletion"]["successful"] == 1
    assert body["media_deletion"]["failed"] == 2
    assert resources.history.find_by_id(entry_id).status is HistoryStatus.DELETED


def test_delete_post_errors(client):
    assert client.delete("/api/v1/posts/abc", headers=HEADERS).json()["detail"] == "INVALID_POST_ID"
    missing = client.delete("/api/v1/posts/404", headers=HEADERS)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "HISTORY_NOT_FOUND"


def test_communique_upload_notifies_and_lists(client, engine, outbox, fake_wp):
    add_wp_user(engine, 1, "socio@gmail.com", "subscriber")
    response = client.post(
        "/api/v1/communiques/upload",
        headers=HEADERS,
        files={"file": ("Asamblea.docx", make_docx(["Convocatoria"]), DOCX_TYPE)},
        data={"title": "Asamblea", "description": "Sábado 10am", "wp_user_id": "3"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["notifications"]["sent"] == 1
    assert body["file_type"] == "docx"
    assert fake_wp.posts[0]["status"] == "publish"
    assert fake_wp.posts[0]["author"] == 3
    assert 'class="docx-communique"' in fake_wp.posts[0]["content"]
    assert [to for to, _ in outbox] == ["socio@gmail.com"]

    listing = client.get("/api/v1/communiques", headers=HEADERS).json()
    assert listing["pagination"]["total"] == 1
    detail = client.get(f"/api/v1/communiques/{body['id']}", headers=HEADERS).json()
    assert detail["notifications"][0]["status"] == "sent"
    stats = client.get("/api/v1/communiques/stats", headers=HEADERS).json()
    assert stats["by_file_type"] == {"docx": 1}


def test_communique_pdf_is_embedded(client, fake_wp):
    pdf = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF"
    response = client.post(
        "/api/v1/communiques/upload",
        headers=HEADERS,
        files={"file": ("Acta.pdf", pdf, "application/pdf")},
        data={"title": "Acta", "wp_user_id": "1"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["file_type"] == "pdf"
    assert body["wp_media_id"] == 501
    content = fake_wp.posts[0]["content"]
    assert "temp://" not in content
    assert "https://wp.test/wp-content/uploads/501.png" in content
    assert fake_wp.posts[0]["featured_media"] == 501


def test_communique_not_found(client):
    response = client.get("/api/v1/communiques/12345", headers=HEADERS)
    assert response.status_code == 404


def test_database_errors_are_503(client, engine):
    with engine.begin() as connection:
        connection.execute(sa.text("DROP TABLE condo360_communiques_notifications"))
        connection.execute(sa.text("DROP TABLE condo360_communiques"))
    response = client.get("/api/v1/communiques", headers=HEADERS)
    assert response.status_code == 503
    assert response.json()["detail"] == "DATABASE_ERROR"
