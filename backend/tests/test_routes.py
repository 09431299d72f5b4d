import atexit
import re

import pytest
from sqlalchemy import insert as sa_insert
from sqlalchemy.exc import OperationalError

from visitor_stats.app import create_app
from visitor_stats.services import denylist as denylist_module
from visitor_stats.services.address_resolver import INTERNAL_ADDRESS
from visitor_stats.services.recording import NO_VISIT_RECORDED
from visitor_stats.storage import visitors


VISITOR = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}


@pytest.fixture
def client(settings):
    app = create_app(settings)
    app.config["TESTING"] = True
    yield app.test_client()
    app.extensions["services"]["database"].close()


def _record(client, headers=VISITOR):
    response = client.post("/api/record-visitor", headers=headers)
    assert response.status_code == 200
    return response.get_json()


def test_root_lists_api_catalogue(client):
    response = client.get("/")
    body = response.get_json()

    assert response.status_code == 200
    assert body["success"] is True
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", body["serviceTime"])
    assert {"path": "/api/record-visitor", "method": "POST"}.items() <= body["availableApis"][1].items()


def test_health_reports_database(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "database": True}


def test_record_then_read_statistics(client):
    body = _record(client)

    assert body["success"] is True
    assert body["visitorIp"] == "203.0.113.7"
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", body["visitTime"])

    response = client.get("/api/get-visitor-data")
    data = response.get_json()

    assert response.status_code == 200
    assert data["totalCount"] == 1
    assert data["lastVisit"] == body["visitTime"]
    assert data["ipList"][0]["ip"] == "203.0.113.7"
    assert data["ipList"][0]["visit_time"] == body["visitTime"]
    assert data["ipList"][0]["remark"] == ""


def test_empty_statistics(client):
    data = client.get("/api/get-visitor-data").get_json()

    assert data == {
        "success": True,
        "totalCount": 0,
        "lastVisit": NO_VISIT_RECORDED,
        "ipList": [],
    }


def test_loopback_visit_is_recorded_as_internal(client):
    body = _record(client, headers={})

    assert body["success"] is True
    assert body["visitorIp"] == INTERNAL_ADDRESS


def test_saved_blacklist_blocks_recording(client):
    _record(client, headers={"X-Real-IP": "198.51.100.1"})

    saved = client.post("/api/save-blacklist", json={"blacklist": ["203.0.113.7"]})
    assert saved.status_code == 200
    assert saved.get_json()["success"] is True

    body = _record(client)
    assert body["success"] is False
    assert body["reason"] == "restricted"

    assert client.get("/api/get-visitor-data").get_json()["totalCount"] == 1
    assert client.get("/api/get-blacklist").get_json()["blacklist"] == ["203.0.113.7"]


def test_verify_ip(client):
    client.post("/api/save-blacklist", json={"blacklist": ["203.0.113.7"]})

    denied = client.get("/api/verify-ip", headers=VISITOR)
    allowed = client.get("/api/verify-ip", headers={"X-Forwarded-For": "198.51.100.1"})
    internal = client.get("/api/verify-ip")

    assert denied.status_code == 200
    assert denied.get_json()["allowAccess"] is False
    assert allowed.get_json()["allowAccess"] is True
    assert internal.get_json()["allowAccess"] is True


def test_save_blacklist_rejects_non_array(client):
    response = client.post("/api/save-blacklist", json={"blacklist": "203.0.113.7"})

    assert response.status_code == 200
    assert response.get_json()["success"] is False
    assert client.get("/api/get-blacklist").get_json()["blacklist"] == []


def test_batch_delete_with_empty_ids_is_rejected(client):
    _record(client)

    response = client.delete("/api/batch-delete-visitor", json={"ids": []})

    assert response.status_code == 200
    assert response.get_json()["success"] is False
    assert client.get("/api/get-visitor-data").get_json()["totalCount"] == 1


def test_batch_delete_and_single_delete(client):
    for _ in range(3):
        _record(client)
    records = client.get("/api/get-visitor-data").get_json()["ipList"]
    ids = [record["id"] for record in records]

    batch = client.delete("/api/batch-delete-visitor", json={"ids": ids[:2]})
    single = client.delete(f"/api/delete-visitor/{ids[2]}")

    assert batch.get_json() == {"success": True, "msg": "Deleted 2 visit records.", "deleted": 2}
    assert single.get_json()["success"] is True
    assert client.get("/api/get-visitor-data").get_json()["totalCount"] == 0


def test_edit_visitor_remark(client):
    _record(client)
    record_id = client.get("/api/get-visitor-data").get_json()["ipList"][0]["id"]

    edited = client.put(f"/api/edit-visitor/{record_id}", json={"remark": "note"})
    assert edited.get_json()["success"] is True
    assert client.get("/api/get-visitor-data").get_json()["ipList"][0]["remark"] == "note"

    cleared = client.put(f"/api/edit-visitor/{record_id}", json={"remark": None})
    assert cleared.get_json()["success"] is True
    assert client.get("/api/get-visitor-data").get_json()["ipList"][0]["remark"] == ""


@pytest.mark.parametrize(
    "method, path",
    [
        ("delete", "/api/delete-visitor/abc"),
        ("put", "/api/edit-visitor/0"),
        ("put", "/api/edit-visitor/999"),
        ("get", "/api/does-not-exist"),
    ],
)
def test_bad_requests_still_answer_200(client, method, path):
    response = getattr(client, method)(path, json={"remark": "x"})

    assert response.status_code == 200
    assert response.get_json()["success"] is False


def test_reset_visitor(client):
    _record(client)
    _record(client)

    response = client.delete("/api/reset-visitor")

    assert response.status_code == 200
    assert response.get_json()["success"] is True
    assert client.get("/api/get-visitor-data").get_json()["totalCount"] == 0


def test_storage_failure_keeps_response_shape(client):
    visitors.drop(client.application.extensions["services"]["database"].engine)

    data = client.get("/api/get-visitor-data").get_json()
    recorded = _record(client)

    assert data["totalCount"] == 0
    assert data["ipList"] == []
    assert recorded["success"] is False
    assert recorded["reason"] == "storage_error"


def test_save_blacklist_reports_failed_entries(client, monkeypatch):
    def failing_insert(table):
        statement = sa_insert(table)

        class _Statement:
            def values(self, **columns):
                if columns.get("ip") == "198.51.100.9":
                    raise OperationalError("INSERT INTO blacklist", {}, Exception("disk I/O error"))
                return statement.values(**columns)

        return _Statement()

    monkeypatch.setattr(denylist_module, "insert", failing_insert)

    response = client.post("/api/save-blacklist", json={"blacklist": ["203.0.113.7", "198.51.100.9"]})
    body = response.get_json()

    assert response.status_code == 200
    assert body["success"] is True
    assert body["failed"] == ["198.51.100.9"]
    assert client.get("/api/get-blacklist").get_json()["blacklist"] == ["203.0.113.7"]


def test_create_app_registers_no_exit_hooks(settings, monkeypatch):
    registered = []
    monkeypatch.setattr(atexit, "register", lambda func, *args, **kwargs: registered.append(func))

    app = create_app(settings)
    database = app.extensions["services"]["database"]
    database.close()

    assert not any(getattr(func, "__self__", None) is database for func in registered)
