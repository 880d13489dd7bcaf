import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.security import create_access_token
from app.db.session import get_db
from app.helpers.s3 import get_object_store
from app.main import app
from app.services.imports.import_service import ImportService
from tests.conftest import XLSX_TYPE, build_xlsx, xlsx_file

PREFIX = "/api/admin/v1/import"
ROWS = [
    ["Order #", "Revenue", "Qty"],
    ["A-1", 10, 1],
    ["A-2", None, 2],
    ["A-3", "5,5", 3],
]


@pytest.fixture
def api(db, store):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_object_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def _headers(user, lang="en"):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}", "Accept-Language": lang}


def _initiate(api, user, client, mapping):
    response = api.post(
        f"{PREFIX}/initiate",
        json={"client_id": client.id, "field_mapping_id": mapping.id, "custom_name": "May"},
        headers=_headers(user),
    )
    assert response.status_code == 201
    return response.json()["data"]


def _upload(api, user, import_id, content, name="orders.xlsx", content_type=XLSX_TYPE):
    return api.post(
        f"{PREFIX}/{import_id}/upload-file",
        files={"file": (name, content, content_type)},
        headers=_headers(user),
    )


def test_requires_token(api):
    response = api.get(f"{PREFIX}/list")
    assert response.status_code == 401
    assert response.json()["status"] == "error"


def test_rejects_bad_token(api):
    response = api.get(f"{PREFIX}/list", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_initiate(api, user, client, mapping):
    data = _initiate(api, user, client, mapping)
    assert data["status"] == "initiated"
    assert data["client_id"] == client.id
    assert data["custom_name"] == "May"


def test_initiate_with_foreign_mapping(api, user, client, other_mapping):
    response = api.post(
        f"{PREFIX}/initiate",
        json={"client_id": client.id, "field_mapping_id": other_mapping.id},
        headers=_headers(user),
    )
    body = response.json()
    assert response.status_code == 400
    assert body["message"] == "Field mapping does not belong to the selected client"
    assert body["error"] == "mapping does not belong to client"


def test_initiate_translates_messages(api, user, client, other_mapping):
    response = api.post(
        f"{PREFIX}/initiate",
        json={"client_id": client.id, "field_mapping_id": other_mapping.id},
        headers=_headers(user, lang="ru-RU,ru;q=0.9"),
    )
    assert response.json()["message"] == "Маппинг полей не принадлежит выбранному клиенту"


def test_client_user_cannot_initiate_for_other_client(api, client_user, other_client, other_mapping):
    response = api.post(
        f"{PREFIX}/initiate",
        json={"client_id": other_client.id, "field_mapping_id": other_mapping.id},
        headers=_headers(client_user),
    )
    assert response.status_code == 404


def test_initiate_validates_body(api, user):
    response = api.post(f"{PREFIX}/initiate", json={"client_id": "abc"}, headers=_headers(user))
    assert response.status_code == 422


def test_upload_and_process(api, store, user, client, mapping):
    record = _initiate(api, user, client, mapping)
    response = _upload(api, user, record["id"], build_xlsx(ROWS))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["import"]["status"] == "preview_ready"
    assert data["statistics"]["total_rows"] == 3
    assert data["statistics"]["rows_succeeded"] == 2
    assert data["statistics"]["rows_failed"] == 1
    assert data["statistics"]["file_headers"] == ["Order #", "Revenue", "Qty"]
    assert data["statistics"]["sample_rows"][1]["revenue"] == 5.5

    processed = api.get(f"{PREFIX}/{record['id']}/results/processed", headers=_headers(user))
    assert processed.status_code == 200
    assert processed.json()["data"]["count"] == 2

    errors = api.get(f"{PREFIX}/{record['id']}/results/errors", headers=_headers(user))
    assert errors.json()["data"]["rows"][0]["row_number"] == 2


def test_upload_rejects_unsupported_type(api, store, user, client, mapping):
    record = _initiate(api, user, client, mapping)
    response = _upload(api, user, record["id"], b"%PDF-1.4", name="orders.pdf", content_type="application/pdf")
    assert response.status_code == 422
    assert store.objects == {}


def test_upload_rejects_large_file(api, store, user, client, mapping, monkeypatch):
    monkeypatch.setattr(settings, "IMPORT_MAX_FILE_SIZE_MB", 0)
    record = _initiate(api, user, client, mapping)
    response = _upload(api, user, record["id"], build_xlsx(ROWS))
    assert response.status_code == 422
    assert store.objects == {}


def test_upload_unreadable_file(api, user, client, mapping):
    record = _initiate(api, user, client, mapping)
    response = _upload(api, user, record["id"], b"\x00\x01garbage", name="orders.csv", content_type="text/csv")
    assert response.status_code == 500
    assert response.json()["message"] == "File could not be read as a spreadsheet"

    detail = api.get(f"{PREFIX}/{record['id']}", headers=_headers(user)).json()["data"]
    assert detail["status"] == "processing_failed"
    assert "Failed to parse file" in detail["status_details"]


def test_upload_for_unknown_import(api, user):
    response = _upload(api, user, 999, build_xlsx(ROWS))
    assert response.status_code == 404


def test_process_route_requires_uploaded_file(api, user, client, mapping):
    record = _initiate(api, user, client, mapping)
    response = api.post(f"{PREFIX}/{record['id']}/process", headers=_headers(user))
    assert response.status_code == 400
    assert response.json()["message"] == "Import is not ready for this action"


def test_process_with_missing_original_file(api, db, store, user, client, mapping):
    record = _initiate(api, user, client, mapping)
    ImportService(db, store).upload_file(record["id"], user.id, xlsx_file(ROWS))
    store.objects.clear()

    response = api.post(f"{PREFIX}/{record['id']}/process", headers=_headers(user))
    assert response.status_code == 500
    assert response.json()["message"] == "File storage or database error"

    detail = api.get(f"{PREFIX}/{record['id']}", headers=_headers(user)).json()["data"]
    assert detail["status"] == "processing_failed"


def test_list_and_get(api, user, client_user, client, other_client, mapping, other_mapping):
    _initiate(api, user, client, mapping)
    foreign = _initiate(api, user, other_client, other_mapping)

    listed = api.get(f"{PREFIX}/list", params={"page_size": 5}, headers=_headers(user)).json()["data"]
    assert listed["total"] == 2
    assert listed["page_size"] == 5
    assert listed["total_pages"] == 1

    paged = api.get(f"{PREFIX}/list", params={"page_size": 1, "page": 2}, headers=_headers(user)).json()["data"]
    assert paged["total_pages"] == 2
    assert len(paged["items"]) == 1

    scoped = api.get(f"{PREFIX}/list", headers=_headers(client_user)).json()["data"]
    assert scoped["total"] == 1
    assert scoped["items"][0]["client_id"] == client.id

    assert api.get(f"{PREFIX}/{foreign['id']}", headers=_headers(user)).status_code == 200
    assert api.get(f"{PREFIX}/{foreign['id']}", headers=_headers(client_user)).status_code == 404


def test_list_rejects_bad_filters(api, user):
    response = api.get(f"{PREFIX}/list", params={"sort_dir": "sideways"}, headers=_headers(user))
    assert response.status_code == 422


def test_results_kind_is_validated(api, user, client, mapping):
    record = _initiate(api, user, client, mapping)
    response = api.get(f"{PREFIX}/{record['id']}/results/everything", headers=_headers(user))
    assert response.status_code == 422


def test_system_fields(api, user):
    response = api.get(f"{PREFIX}/system-fields", headers=_headers(user))
    fields = {item["name"]: item["type"] for item in response.json()["data"]}
    assert fields["revenue"] == "FLOAT"
    assert fields["order_date"] == "DATETIME"
