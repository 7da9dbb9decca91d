import pytest
from fastapi.testclient import TestClient

from akademy.database.supabase_client import get_supabase, get_supabase_admin
from akademy.main import app
from conftest import HQ_MADRID, HQ_VALENCIA, ROLE_STUDENT, SEASON_MADRID

AGREEMENT_ID = "5b0f4c3e-2f7a-4d1e-9a51-2c6d8e9f0a11"
MISSING_ID = "0e9d8c7b-6a5f-4e3d-8c2b-1a0f9e8d7c6b"
ADMIN = {"Authorization": "Bearer admin-token"}


def _row(**overrides):
    row = {
        "id": AGREEMENT_ID,
        "email": "ana@example.org",
        "document_number": "12345678A",
        "status": "prospect",
        "role_id": ROLE_STUDENT,
        "headquarter_id": HQ_MADRID,
        "season_id": SEASON_MADRID,
        "created_at": "2026-09-01T10:00:00+00:00",
    }
    row.update(overrides)
    return row


@pytest.fixture
def client(fake_supabase):
    fake_supabase.add_token("admin-token", 80)
    fake_supabase.add_token("director-token", 50)
    app.dependency_overrides[get_supabase] = lambda: fake_supabase
    app.dependency_overrides[get_supabase_admin] = lambda: fake_supabase
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_list_requires_admin_level(client):
    response = client.get("/api/v1/agreements", headers={"Authorization": "Bearer director-token"})

    assert response.status_code == 403


def test_list_filters_and_orders_newest_first(client, fake_supabase):
    fake_supabase.tables["agreements"] += [
        _row(id="a1", created_at="2026-09-01T10:00:00+00:00"),
        _row(id="a2", created_at="2026-09-03T10:00:00+00:00"),
        _row(id="a3", headquarter_id=HQ_VALENCIA),
        _row(id="a4", status="active"),
    ]

    response = client.get("/api/v1/agreements",
                          params={"status": "prospect", "headquarter_id": HQ_MADRID}, headers=ADMIN)

    assert response.status_code == 200
    assert [a["id"] for a in response.json()["data"]] == ["a2", "a1"]


def test_list_pages_with_limit_and_offset(client, fake_supabase):
    fake_supabase.tables["agreements"] += [
        _row(id=f"a{day}", created_at=f"2026-09-0{day}T10:00:00+00:00") for day in range(1, 6)
    ]

    response = client.get("/api/v1/agreements", params={"limit": 2, "offset": 1}, headers=ADMIN)

    assert [a["id"] for a in response.json()["data"]] == ["a4", "a3"]


@pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 1001}, {"offset": -1}, {"status": "archived"}])
def test_list_rejects_invalid_query(client, params):
    response = client.get("/api/v1/agreements", params=params, headers=ADMIN)

    assert response.status_code == 422


def test_get_returns_agreement(client, fake_supabase):
    fake_supabase.tables["agreements"].append(_row())

    response = client.get(f"/api/v1/agreements/{AGREEMENT_ID}", headers=ADMIN)

    assert response.status_code == 200
    assert response.json()["data"]["email"] == "ana@example.org"


def test_get_unknown_agreement_is_not_found(client):
    response = client.get(f"/api/v1/agreements/{MISSING_ID}", headers=ADMIN)

    assert response.status_code == 404
    assert response.json()["detail"] == "Agreement not found"


def _create_payload(**overrides):
    payload = {
        "role_id": ROLE_STUDENT,
        "headquarter_id": HQ_MADRID,
        "season_id": SEASON_MADRID,
        "email": "luis@example.org",
        "document_number": "87654321B",
        "name": "Luis",
    }
    payload.update(overrides)
    return payload


def test_create_stores_defaults(client, fake_supabase):
    response = client.post("/api/v1/agreements", json=_create_payload(), headers=ADMIN)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "prospect"
    assert data["volunteering_agreement"] is False
    stored = fake_supabase.tables["agreements"][0]
    assert stored["email"] == "luis@example.org"
    assert stored["headquarter_id"] == HQ_MADRID


def test_create_rejects_invalid_email(client, fake_supabase):
    response = client.post("/api/v1/agreements", json=_create_payload(email="not-an-email"), headers=ADMIN)

    assert response.status_code == 422
    assert fake_supabase.tables["agreements"] == []


def test_create_duplicate_is_conflict(client, fake_supabase):
    fake_supabase.errors[("agreements", "insert")] = RuntimeError(
        'duplicate key value violates unique constraint "agreements_email_key"'
    )

    response = client.post("/api/v1/agreements", json=_create_payload(), headers=ADMIN)

    assert response.status_code == 409


def test_create_hides_unexpected_store_errors(client, fake_supabase):
    fake_supabase.errors[("agreements", "insert")] = RuntimeError("connection reset by peer")

    response = client.post("/api/v1/agreements", json=_create_payload(), headers=ADMIN)

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"


def test_update_changes_only_sent_fields(client, fake_supabase):
    fake_supabase.tables["agreements"].append(_row(phone="600000000"))

    response = client.put(f"/api/v1/agreements/{AGREEMENT_ID}", json={"status": "active"}, headers=ADMIN)

    assert response.status_code == 200
    stored = fake_supabase.tables["agreements"][0]
    assert stored["status"] == "active"
    assert stored["phone"] == "600000000"
    [update] = fake_supabase.calls_to("agreements", "update")
    assert update.payload == {"status": "active"}


def test_update_with_empty_body_is_bad_request(client, fake_supabase):
    fake_supabase.tables["agreements"].append(_row())

    response = client.put(f"/api/v1/agreements/{AGREEMENT_ID}", json={}, headers=ADMIN)

    assert response.status_code == 400
    assert response.json()["detail"] == "No fields to update"


def test_update_unknown_agreement_is_not_found(client):
    response = client.put(f"/api/v1/agreements/{MISSING_ID}", json={"name": "Eva"}, headers=ADMIN)

    assert response.status_code == 404


def test_delete_removes_agreement(client, fake_supabase):
    fake_supabase.tables["agreements"].append(_row())

    response = client.delete(f"/api/v1/agreements/{AGREEMENT_ID}", headers=ADMIN)

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert fake_supabase.tables["agreements"] == []


def test_delete_unknown_agreement_is_not_found(client):
    response = client.delete(f"/api/v1/agreements/{MISSING_ID}", headers=ADMIN)

    assert response.status_code == 404
