"""
HTTP surface tests through the Flask test client.
"""

import pytest

from possync.services import sync_metadata_service
from tests.conftest import OTHER_USER_ID, auth_headers, item_payload, transaction_payload


@pytest.mark.parametrize("method, url", [
    ("post", "/api/sync/pull"),
    ("post", "/api/sync/push"),
    ("get", "/api/sync/status"),
    ("post", "/api/vouchers/init-daily"),
    ("post", "/api/vouchers/generate"),
    ("post", "/api/vouchers/confirm"),
])
def test_user_header_required(client, db_session, method, url):
    response = getattr(client, method)(url, json={})

    assert response.status_code == 401
    assert response.get_json() == {"error": "Authentication required"}


def test_overlong_user_id_rejected(client, db_session):
    response = client.post("/api/sync/pull", json={}, headers=auth_headers("u" * 65))

    assert response.status_code == 401


def test_push_then_pull(client, db_session):
    response = client.post(
        "/api/sync/push",
        json={"items": [item_payload("i1")], "transactions": [transaction_payload("t1")]},
        headers=auth_headers(),
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["items"]["synced"] == [{"id": "i1", "cloud_id": "i1", "action": "created"}]
    assert body["transactions"]["synced"][0]["voucher_number"] == "GUR-20240301-0001"

    response = client.post("/api/sync/pull", json={"since": None}, headers=auth_headers())

    assert response.status_code == 200
    pulled = response.get_json()
    assert [row["id"] for row in pulled["items"]] == ["i1"]
    assert pulled["items"][0]["price"] == 2.5
    assert [row["id"] for row in pulled["transactions"]] == ["t1"]

    other = client.post("/api/sync/pull", json={}, headers=auth_headers(OTHER_USER_ID)).get_json()
    assert other["items"] == []


def test_pull_without_body(client, db_session):
    response = client.post("/api/sync/pull", headers=auth_headers())

    assert response.status_code == 200
    assert set(response.get_json()) == {"items", "customers", "transactions", "server_timestamp"}


def test_pull_bad_cursor(client, db_session):
    response = client.post("/api/sync/pull", json={"since": "not-a-date"}, headers=auth_headers())

    assert response.status_code == 400
    assert "since" in response.get_json()["error"]


@pytest.mark.parametrize("payload", [
    ["items"],
    {"items": {"id": "i1"}},
    {"items": [{"name": "no id"}]},
    {"items": [item_payload("i1", price="free")]},
])
def test_push_rejects_malformed_batch(client, db_session, payload):
    response = client.post("/api/sync/push", json=payload, headers=auth_headers())

    assert response.status_code == 400
    assert "error" in response.get_json()

    pulled = client.post("/api/sync/pull", json={}, headers=auth_headers()).get_json()
    assert pulled["items"] == []


def test_push_batch_size_limit(app, client, db_session, monkeypatch):
    monkeypatch.setitem(app.config, "SYNC_MAX_BATCH_SIZE", 2)

    response = client.post(
        "/api/sync/push",
        json={"items": [item_payload(f"i{n}") for n in range(3)]},
        headers=auth_headers(),
    )

    assert response.status_code == 400
    assert response.get_json() == {"error": "items exceeds max batch size 2"}


def test_sync_status(client, db_session):
    client.post("/api/sync/push", json={"items": [item_payload("i1")]}, headers=auth_headers())

    response = client.get("/api/sync/status", headers=auth_headers())

    assert response.status_code == 200
    metadata = response.get_json()["metadata"]
    assert [(m["entity_type"], m["sync_count"]) for m in metadata] == [("items", 1)]
    assert metadata[0]["last_conflict_at"] is None


def test_sync_status_failure_is_json(client, db_session, monkeypatch):
    def broken(user_id):
        raise RuntimeError("database gone")

    monkeypatch.setattr(sync_metadata_service, "list_for_user", broken)

    response = client.get("/api/sync/status", headers=auth_headers())

    assert response.status_code == 500
    assert response.get_json() == {"error": "Failed to load sync status"}


def test_init_daily(client, db_session):
    response = client.post(
        "/api/vouchers/init-daily",
        json={"company_code": "GUR", "date": "20240301"},
        headers=auth_headers(),
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["prefix"] == "GUR-20240301"
    assert body["next_sequence"] == 1


def test_init_daily_requires_fields(client, db_session):
    response = client.post("/api/vouchers/init-daily", json={"date": "20240301"}, headers=auth_headers())

    assert response.status_code == 400
    assert response.get_json() == {"error": "company_code is required"}


def test_generate_free_and_taken(client, db_session):
    client.post("/api/sync/push", json={"transactions": [transaction_payload("t1")]}, headers=auth_headers())
    body = {"provisional_voucher": "TMP-t2", "company_code": "GUR", "date": "20240301"}

    taken = client.post("/api/vouchers/generate", json={**body, "sequence": 1}, headers=auth_headers())
    free = client.post("/api/vouchers/generate", json={**body, "sequence": 2}, headers=auth_headers())

    assert taken.status_code == 409
    assert taken.get_json() == {"error": "Voucher number already exists"}
    assert free.status_code == 200
    assert free.get_json()["voucher_number"] == "GUR-20240301-0002"


def test_confirm(client, db_session):
    client.post("/api/sync/push", json={"transactions": [transaction_payload("t1")]}, headers=auth_headers())

    response = client.post(
        "/api/vouchers/confirm",
        json={"provisional_voucher": "TMP-t1", "voucher_number": "GUR-20240301-0100", "transaction_id": "t1"},
        headers=auth_headers(),
    )

    assert response.status_code == 200
    assert response.get_json() == {
        "success": True,
        "message": "Voucher number confirmed",
        "voucher_number": "GUR-20240301-0100",
        "transaction_id": "t1",
    }


def test_confirm_not_found(client, db_session):
    response = client.post(
        "/api/vouchers/confirm",
        json={"provisional_voucher": "TMP-x", "voucher_number": "GUR-20240301-0001", "transaction_id": "missing"},
        headers=auth_headers(),
    )

    assert response.status_code == 404
    assert response.get_json() == {"error": "Transaction not found"}


def test_ping(client, db_session):
    response = client.get("/api/ping")

    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "ok"
    assert body["checks"]["database"]["status"] == "healthy"
