"""Import API tests — multipart CSV upload, JSON import, templates, history."""

from io import BytesIO

from completions.models import db
from completions.models.auth import UserProfile
from completions.models.completions import Tag
from completions.models.import_log import ImportLog


def _tags_csv(subsystem_id, *codes):
    lines = ["tag_code,discipline,subsystem_id,description,device_type,criticality"]
    lines += [f'{code},INST,{subsystem_id},"Transmisor, presión",TRANSMITTER,' for code in codes]
    return ("\n".join(lines) + "\n").encode("utf-8")


def _upload(client, headers, content, filename="tags.csv", **form):
    data = {"file": (BytesIO(content), filename), "entity_type": "tags", **form}
    return client.post(
        "/api/v1/import/csv",
        data=data,
        headers={"Authorization": headers["Authorization"]},
        content_type="multipart/form-data",
    )


def test_csv_import_requires_session(client, demo):
    res = client.post("/api/v1/import/csv", data={
        "file": (BytesIO(b"tag_code\n"), "t.csv"),
        "entity_type": "tags",
        "project_id": demo["project_id"],
    }, content_type="multipart/form-data")
    assert res.status_code == 401


def test_api_import_requires_session(client, demo):
    res = client.post("/api/v1/import/api", json={
        "entity_type": "tags", "project_id": demo["project_id"], "data": [],
    })
    assert res.status_code == 401


def test_csv_import_records_user(client, demo, auth_headers):
    content = _tags_csv(demo["subsystem_ids"][0], "PT-201", "PT-202")
    res = _upload(client, auth_headers, content, project_id=demo["project_id"],
                  system_id=demo["system_id"])
    assert res.status_code == 200, res.get_json()
    data = res.get_json()
    assert data["status"] == "completed"
    assert data["records_success"] == 2

    tag = Tag.query.filter_by(tag_code="PT-201").one()
    assert tag.description == "Transmisor, presión"
    assert tag.criticality == "MEDIUM"

    log = db.session.get(ImportLog, data["import_id"])
    admin = UserProfile.query.filter_by(email="admin@acme-energy.com").one()
    assert log.user_id == admin.id
    assert log.system_id == demo["system_id"]
    assert log.metadata_["columns"] == sorted(
        ["tag_code", "discipline", "subsystem_id", "description", "device_type", "criticality"]
    )
    assert log.metadata_["request_id"] == res.headers["X-Request-ID"]


def test_csv_import_validation(client, demo, auth_headers):
    content = _tags_csv(demo["subsystem_ids"][0], "PT-1")
    assert _upload(client, auth_headers, content).status_code == 400  # no project_id
    res = _upload(client, auth_headers, content, filename="tags.xlsx", project_id=demo["project_id"])
    assert res.status_code == 400
    res = _upload(client, auth_headers, content, project_id="missing")
    assert res.status_code == 404


def test_csv_import_rejects_non_utf8(client, demo, auth_headers):
    res = _upload(client, auth_headers, b"\xff\xfetag_code\n", project_id=demo["project_id"])
    assert res.status_code == 400
    assert res.get_json()["error"] == "CSV must be UTF-8 encoded"
    assert ImportLog.query.count() == 0


def test_json_import(client, demo, auth_headers):
    res = client.post("/api/v1/import/api", headers=auth_headers, json={
        "entity_type": "punch_items",
        "project_id": demo["project_id"],
        "data": [
            {"subsystem_id": demo["subsystem_ids"][1], "category": "C",
             "description": "Falta tapa", "due_date": "2025-04-01"},
            {"subsystem_id": demo["subsystem_ids"][1], "category": "A",
             "description": "x", "priority": "high"},
        ],
    })
    assert res.status_code == 200
    data = res.get_json()
    assert data["status"] == "partial"
    assert data["errors"][0]["row"] == 2


def test_json_import_bad_request(client, demo, auth_headers):
    res = client.post("/api/v1/import/api", headers=auth_headers, json={
        "entity_type": "tags", "project_id": demo["project_id"], "data": "nope",
    })
    assert res.status_code == 400
    res = client.post("/api/v1/import/api", headers=auth_headers, json={
        "entity_type": "users", "project_id": demo["project_id"], "data": [],
    })
    assert res.status_code == 400


def test_template_download(client):
    res = client.get("/api/v1/import/template/punch_items")
    assert res.status_code == 200
    assert res.mimetype == "text/csv"
    assert 'filename="template_punch_items.csv"' in res.headers["Content-Disposition"]
    assert res.get_data(as_text=True).startswith("subsystem_id,category,description")

    assert client.get("/api/v1/import/template/unknown").status_code == 400


def test_logs_listing(client, demo, auth_headers):
    _upload(client, auth_headers, _tags_csv(demo["subsystem_ids"][0], "PT-9"),
            project_id=demo["project_id"])
    res = client.get(f"/api/v1/import/logs?project_id={demo['project_id']}")
    assert res.status_code == 200
    logs = res.get_json()
    assert len(logs) == 1
    assert logs[0]["file_name"] == "tags.csv"
    assert logs[0]["entity_type"] == "tags"
