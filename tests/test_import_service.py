"""
Bulk import service tests — CSV parsing, row isolation, import log, templates.
"""

import pytest

from completions.core.exceptions import NotFoundError, ValidationError
from completions.models import db
from completions.models.completions import ITR, PreservationTask, PunchItem, Tag
from completions.models.import_log import ImportLog
from completions.services import import_service
from completions.services.import_service import (
    generate_csv_template,
    import_csv,
    import_records,
    list_import_logs,
    parse_csv,
)

PUNCH_HEADER = "subsystem_id,category,description,status,raised_by,due_date,tag_id\n"


def _punch_csv(subsystem_id, rows=10, bad_row=None):
    lines = [PUNCH_HEADER]
    for n in range(1, rows + 1):
        target = "no-such-subsystem" if n == bad_row else subsystem_id
        lines.append(f"{target},B,Punch {n},OPEN,QA/QC,2025-02-{n:02d},\n")
    return "".join(lines)


# ═══════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════

def test_parse_csv_handles_quotes_bom_and_blank_lines():
    content = (
        "\ufefftag_code,description\r\n"
        '"P-1","Bomba, centrífuga"\r\n'
        "\r\n"
        ' P-2 ,"Dice ""hola"""\r\n'
    ).encode("utf-8")
    rows = parse_csv(content)
    assert rows == [
        {"tag_code": "P-1", "description": "Bomba, centrífuga"},
        {"tag_code": "P-2", "description": 'Dice "hola"'},
    ]


def test_parse_csv_empty_file():
    with pytest.raises(ValidationError):
        parse_csv("")


def test_parse_csv_rejects_non_utf8():
    with pytest.raises(ValidationError, match="UTF-8"):
        parse_csv("tag_code\nBomba de crudo\n".encode("latin-1") + b"\xff\xfe")
    # Latin-1 accents are not valid UTF-8 either
    with pytest.raises(ValidationError):
        parse_csv("description\nRotación\n".encode("latin-1"))


# ═══════════════════════════════════════════════════════════════
# CSV import
# ═══════════════════════════════════════════════════════════════

def test_bad_row_is_isolated(demo):
    subsystem_id = demo["subsystem_ids"][0]
    before = PunchItem.query.count()

    result = import_csv(None, "punch.csv", _punch_csv(subsystem_id, bad_row=4),
                        "punch_items", demo["project_id"], demo["system_id"])

    assert result["success"] is True
    assert result["status"] == "partial"
    assert result["records_processed"] == 10
    assert result["records_success"] == 9
    assert result["records_failed"] == 1
    assert [e["row"] for e in result["errors"]] == [4]
    assert result["errors"][0]["record"]["subsystem_id"] == "no-such-subsystem"
    assert PunchItem.query.count() == before + 9

    log = db.session.get(ImportLog, result["import_id"])
    assert log.status == "partial"
    assert log.import_type == "csv"
    assert log.file_name == "punch.csv"
    assert (log.records_processed, log.records_success, log.records_failed) == (10, 9, 1)
    assert log.error_details[0]["row"] == 4
    assert log.metadata_ == {"columns": sorted(PUNCH_HEADER.strip().split(","))}


def test_all_rows_good_is_completed(demo):
    result = import_csv(None, "p.csv", _punch_csv(demo["subsystem_ids"][1], rows=3),
                        "punch_items", demo["project_id"])
    assert result["status"] == "completed"
    assert result["errors"] == []
    assert db.session.get(ImportLog, result["import_id"]).error_details is None


def test_all_rows_bad_is_failed_and_errors_are_previewed(demo):
    content = PUNCH_HEADER + "".join(
        f"{demo['subsystem_ids'][0]},Z,Punch {n},OPEN,,,\n" for n in range(12)
    )
    result = import_csv(None, "bad.csv", content, "punch_items", demo["project_id"])

    assert result["status"] == "failed"
    assert result["records_failed"] == 12
    assert len(result["errors"]) == 10
    assert "Invalid category" in result["errors"][0]["error"]
    # The full list is kept on the log
    assert len(db.session.get(ImportLog, result["import_id"]).error_details) == 12


def test_csv_defaults_and_coercion(demo):
    tag_id = Tag.query.filter_by(tag_code="P-101A").one().id
    content = (
        "tag_id,description,frequency_days,next_due_date,status\n"
        f"{tag_id},Lubricación,15,31/01/2025,\n"
        f"{tag_id},Rotación,quince,2025-01-31,OK\n"
        f"{tag_id},Limpieza,30,2025-13-45,OK\n"
    )
    result = import_csv(None, "pres.csv", content, "preservation", demo["project_id"])

    assert result["records_success"] == 1
    assert [e["row"] for e in result["errors"]] == [2, 3]
    task = PreservationTask.query.filter_by(description="Lubricación").one()
    assert task.frequency_days == 15
    assert task.status == "OK"
    assert task.next_due_date.isoformat() == "2025-01-31"


def test_itr_csv_import(demo):
    subsystem_id = demo["subsystem_ids"][0]
    content = (
        "itr_code,itr_type,discipline,status,subsystem_id,comments\n"
        f'ITR-X-1,A,MECH,,{subsystem_id},"Alineación, eje"\n'
        f"ITR-X-2,C,MECH,,{subsystem_id},\n"
    )
    result = import_csv(None, "itrs.csv", content, "itrs", demo["project_id"], demo["system_id"])
    assert result["status"] == "partial"
    itr = ITR.query.filter_by(itr_code="ITR-X-1").one()
    assert itr.status == "NOT_STARTED"
    assert itr.comments == "Alineación, eje"


def test_aborted_run_leaves_failed_log(demo, monkeypatch):
    def explode(exc):
        raise RuntimeError("disk full")

    monkeypatch.setattr(import_service, "_error_message", explode)
    before = PunchItem.query.count()

    with pytest.raises(RuntimeError):
        import_csv(None, "p.csv", _punch_csv(demo["subsystem_ids"][0], rows=3, bad_row=2),
                   "punch_items", demo["project_id"])

    log = ImportLog.query.one()
    assert log.status == "failed"
    assert log.error_details == {"error": "disk full"}
    assert (log.records_processed, log.records_success, log.records_failed) == (3, 0, 3)
    assert log.file_name == "p.csv"
    # Row 1 went in before the abort and is rolled back with the run
    assert PunchItem.query.count() == before


def test_import_scope_checks(demo):
    with pytest.raises(ValidationError):
        import_csv(None, "x.csv", PUNCH_HEADER, "bogus", demo["project_id"])
    with pytest.raises(ValidationError):
        import_csv(None, "x.csv", PUNCH_HEADER, "punch_items", "")
    with pytest.raises(NotFoundError):
        import_csv(None, "x.csv", PUNCH_HEADER, "punch_items", "missing-project")
    with pytest.raises(NotFoundError):
        import_csv(None, "x.csv", PUNCH_HEADER, "punch_items", demo["project_id"], "other-system")
    assert ImportLog.query.count() == 0


# ═══════════════════════════════════════════════════════════════
# API import
# ═══════════════════════════════════════════════════════════════

def test_api_import_rejects_unknown_columns(demo):
    subsystem_id = demo["subsystem_ids"][1]
    records = [
        {"subsystem_id": subsystem_id, "tag_code": "TT-900", "discipline": "INST"},
        {"subsystem_id": subsystem_id, "tag_code": "TT-901", "colour": "red"},
        "not-an-object",
    ]
    result = import_records(None, "tags", demo["project_id"], records)

    assert result["records_success"] == 1
    assert result["status"] == "partial"
    errors = {e["row"]: e["error"] for e in result["errors"]}
    assert "colour" in errors[2]
    assert 3 in errors
    assert Tag.query.filter_by(tag_code="TT-900").count() == 1
    assert db.session.get(ImportLog, result["import_id"]).import_type == "api"


def test_api_import_unknown_entity_and_bad_payload(demo):
    with pytest.raises(ValidationError):
        import_records(None, "user_profiles", demo["project_id"], [])
    with pytest.raises(ValidationError):
        import_records(None, "tags", demo["project_id"], {"tag_code": "x"})


def test_import_history_is_newest_first(demo):
    import_records(None, "tags", demo["project_id"], [])
    import_csv(None, "a.csv", PUNCH_HEADER, "punch_items", demo["project_id"])
    logs = list_import_logs(demo["project_id"])
    assert len(logs) == 2
    assert {log["import_type"] for log in logs} == {"api", "csv"}
    assert list_import_logs("other-project") == []


# ═══════════════════════════════════════════════════════════════
# Templates
# ═══════════════════════════════════════════════════════════════

@pytest.mark.parametrize("entity_type,header", [
    ("itrs", "itr_code,itr_type,discipline,status,subsystem_id,comments"),
    ("tags", "tag_code,discipline,subsystem_id,description,device_type,criticality"),
    ("punch_items", "subsystem_id,category,description,status,raised_by,due_date,tag_id"),
    ("preservation", "tag_id,description,frequency_days,next_due_date,status"),
])
def test_templates(entity_type, header):
    lines = generate_csv_template(entity_type).splitlines()
    assert lines[0] == header
    assert len(lines) == 2


def test_template_unknown_entity():
    with pytest.raises(ValidationError):
        generate_csv_template("users")
