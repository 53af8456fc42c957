"""
Bulk Import Service — CSV uploads and JSON (API) imports.

Features:
  - CSV parsing with csv.DictReader (quoted fields, BOM, CRLF)
  - Per-entity column mapping with defaults and type coercion
  - One SAVEPOINT per row: a bad row (FK, enum, date, integer) is recorded
    and the remaining rows still go in
  - ImportLog row per run with counters and every row error; a run that
    aborts outside the row loop still leaves a failed log
  - Template CSV generation
  - Import history listing

Row numbers in error reports are 1-based data rows (the header is not counted).
"""

import csv
import io
import logging

from flask import current_app, g, has_request_context
from sqlalchemy import Date, Integer
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from completions.core.exceptions import NotFoundError, ValidationError
from completions.models import db
from completions.models.completions import (
    DISCIPLINES,
    ITR,
    ITR_STATUSES,
    ITR_TYPES,
    PRESERVATION_STATUSES,
    PUNCH_CATEGORIES,
    PUNCH_STATUSES,
    PreservationTask,
    PunchItem,
    Tag,
)
from completions.models.import_log import ImportLog
from completions.models.project import CRITICALITIES, Project, Subsystem, System
from completions.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

ERROR_PREVIEW = 10


# ═══════════════════════════════════════════════════════════════
# Entity registry
# ═══════════════════════════════════════════════════════════════

# CSV entity type -> (model, {column: default}, example row)
CSV_ENTITIES = {
    "itrs": (
        ITR,
        {"itr_code": None, "itr_type": None, "discipline": None,
         "status": "NOT_STARTED", "subsystem_id": None, "comments": None},
        ["ITR-A-001", "A", "MECH", "NOT_STARTED", "<subsystem_id>", ""],
    ),
    "tags": (
        Tag,
        {"tag_code": None, "discipline": None, "subsystem_id": None,
         "description": None, "device_type": None, "criticality": "MEDIUM"},
        ["P-1001A", "MECH", "<subsystem_id>", "Bomba de transferencia", "PUMP", "HIGH"],
    ),
    "punch_items": (
        PunchItem,
        {"subsystem_id": None, "category": None, "description": None,
         "status": "OPEN", "raised_by": None, "due_date": None, "tag_id": None},
        ["<subsystem_id>", "A", "Falta soporte de tubería", "OPEN", "QA/QC", "2025-01-31", ""],
    ),
    "preservation": (
        PreservationTask,
        {"tag_id": None, "description": None, "frequency_days": None,
         "next_due_date": None, "status": "OK"},
        ["<tag_id>", "Rotación de eje", "30", "2025-01-15", "OK"],
    ),
}

# API entity type (table name) -> model
API_ENTITIES = {
    "itrs": ITR,
    "tags": Tag,
    "punch_items": PunchItem,
    "preservation_tasks": PreservationTask,
    "subsystems": Subsystem,
}

_ALLOWED_VALUES = {
    ITR: {"itr_type": ITR_TYPES, "status": ITR_STATUSES, "discipline": DISCIPLINES},
    Tag: {"discipline": DISCIPLINES, "criticality": CRITICALITIES},
    PunchItem: {"category": set(PUNCH_CATEGORIES), "status": PUNCH_STATUSES},
    PreservationTask: {"status": PRESERVATION_STATUSES},
}

_READ_ONLY_COLUMNS = {"created_at", "updated_at"}


# ═══════════════════════════════════════════════════════════════
# CSV Template & Parsing
# ═══════════════════════════════════════════════════════════════

def generate_csv_template(entity_type: str) -> str:
    """Header plus one example row for a CSV entity type."""
    if entity_type not in CSV_ENTITIES:
        raise ValidationError(
            f"Unknown entity_type: {entity_type}",
            details={"entity_type": sorted(CSV_ENTITIES)},
        )
    _, columns, example = CSV_ENTITIES[entity_type]
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(list(columns))
    writer.writerow(example)
    return output.getvalue()


def parse_csv(file_content: str | bytes) -> list[dict]:
    """Parse CSV content into row dicts with stripped keys and values; blank lines skipped."""
    if isinstance(file_content, bytes):
        try:
            file_content = file_content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ValidationError(
                "CSV must be UTF-8 encoded",
                details={"file": f"invalid byte at position {exc.start}"},
            )

    reader = csv.DictReader(io.StringIO(file_content))
    if not reader.fieldnames:
        raise ValidationError("CSV file is empty", details={"file": "no header row"})

    rows = []
    for row in reader:
        cleaned = {
            (k or "").strip(): (v or "").strip() if isinstance(v, str) else v
            for k, v in row.items()
            if k is not None
        }
        if not any(cleaned.values()):
            continue
        rows.append(cleaned)
    return rows


# ═══════════════════════════════════════════════════════════════
# Row conversion
# ═══════════════════════════════════════════════════════════════

def _coerce(model, values: dict) -> dict:
    """Blank → None, Date/Integer columns converted, enum columns checked.

    Raises ValueError with a readable message on the first bad field.
    """
    columns = model.__table__.columns
    allowed = _ALLOWED_VALUES.get(model, {})
    out = {}
    for name, value in values.items():
        if isinstance(value, str):
            value = value.strip()
        if value == "":
            value = None
        if value is not None:
            col_type = columns[name].type
            if isinstance(col_type, Date):
                value = parse_date_input(value)
            elif isinstance(col_type, Integer) and not isinstance(value, int):
                try:
                    value = int(str(value))
                except ValueError:
                    raise ValueError(f"{name} must be an integer, got {value!r}")
            if name in allowed and value not in allowed[name]:
                raise ValueError(
                    f"Invalid {name}: {value!r}. Allowed: {sorted(allowed[name])}"
                )
        out[name] = value
    return out


def _csv_row_to_kwargs(entity_type: str, record: dict) -> dict:
    model, columns, _ = CSV_ENTITIES[entity_type]
    values = {}
    for column, default in columns.items():
        raw = record.get(column)
        values[column] = raw if raw not in (None, "") else default
    return _coerce(model, values)


def _api_row_to_kwargs(model, record) -> dict:
    if not isinstance(record, dict):
        raise ValueError("Record must be a JSON object")
    known = {c.name for c in model.__table__.columns} - _READ_ONLY_COLUMNS
    unknown = sorted(set(record) - known)
    if unknown:
        raise ValueError(f"Unknown columns: {', '.join(unknown)}")
    return _coerce(model, dict(record))


def _error_message(exc: Exception) -> str:
    if isinstance(exc, IntegrityError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


# ═══════════════════════════════════════════════════════════════
# Import execution
# ═══════════════════════════════════════════════════════════════

def _check_scope(project_id: str | None, system_id: str | None) -> None:
    if not project_id:
        raise ValidationError("project_id is required", details={"project_id": "required"})
    if db.session.get(Project, project_id) is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    if system_id:
        system = db.session.get(System, system_id)
        if system is None or system.project_id != project_id:
            raise NotFoundError(resource="System", resource_id=system_id)


def _run_import(log: ImportLog, model, records: list, to_kwargs) -> dict:
    """Insert ``records`` one SAVEPOINT at a time and finalise ``log``. Commits."""
    errors = []
    success = 0
    for row_number, record in enumerate(records, start=1):
        try:
            with db.session.begin_nested():
                db.session.add(model(**to_kwargs(record)))
                db.session.flush()
            success += 1
        except (SQLAlchemyError, ValueError, TypeError) as exc:
            errors.append({"row": row_number, "record": record, "error": _error_message(exc)})

    failed = len(errors)
    if failed == 0:
        status = "completed"
    elif success == 0:
        status = "failed"
    else:
        status = "partial"

    log.status = status
    log.records_success = success
    log.records_failed = failed
    log.error_details = errors or None
    db.session.commit()

    logger.info(
        "Import %s finished: %d ok, %d failed", log.id, success, failed,
        extra={"project_id": log.project_id, "entity_type": log.entity_type},
    )
    return {
        "success": True,
        "import_id": log.id,
        "status": status,
        "records_processed": len(records),
        "records_success": success,
        "records_failed": failed,
        "errors": errors[:current_app.config.get("IMPORT_ERROR_PREVIEW", ERROR_PREVIEW)],
    }


def _log_fields(session_ctx, import_type, entity_type, project_id, system_id,
                records, file_name=None) -> dict:
    columns = sorted({key for record in records if isinstance(record, dict) for key in record})
    metadata = {"columns": columns}
    if has_request_context() and getattr(g, "request_id", None):
        metadata["request_id"] = g.request_id
    return {
        "user_id": session_ctx.user_id if session_ctx else None,
        "import_type": import_type,
        "entity_type": entity_type,
        "project_id": project_id,
        "system_id": system_id or None,
        "file_name": file_name,
        "records_processed": len(records),
        "metadata_": metadata,
    }


def _record_failed_run(fields: dict, exc: Exception) -> None:
    """Write a ``failed`` ImportLog for a run that aborted outside the row loop."""
    try:
        db.session.add(ImportLog(
            status="failed",
            records_failed=fields["records_processed"],
            error_details={"error": str(exc)},
            **fields,
        ))
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Could not record failed import",
                         extra={"project_id": fields["project_id"]})


def _execute(fields: dict, model, records: list, to_kwargs) -> dict:
    """Open the ImportLog and run the rows; an aborted run leaves a ``failed`` log."""
    try:
        log = ImportLog(status="processing", **fields)
        db.session.add(log)
        # The flushed INSERT opens the outer transaction the per-row SAVEPOINTs nest in.
        db.session.flush()
        return _run_import(log, model, records, to_kwargs)
    except Exception as exc:
        db.session.rollback()
        logger.error("Import of %s aborted: %s", fields["entity_type"], exc, exc_info=True,
                     extra={"project_id": fields["project_id"],
                            "entity_type": fields["entity_type"]})
        _record_failed_run(fields, exc)
        raise


def import_csv(session_ctx, file_name: str, content, entity_type: str,
               project_id: str, system_id: str | None = None) -> dict:
    """Import an uploaded CSV file for one entity type."""
    if entity_type not in CSV_ENTITIES:
        raise ValidationError(
            f"Unknown entity_type: {entity_type}",
            details={"entity_type": sorted(CSV_ENTITIES)},
        )
    _check_scope(project_id, system_id)
    records = parse_csv(content)
    logger.info("Processing %d CSV records for %s", len(records), entity_type,
                extra={"project_id": project_id, "entity_type": entity_type})

    model = CSV_ENTITIES[entity_type][0]
    fields = _log_fields(session_ctx, "csv", entity_type, project_id, system_id,
                         records, file_name=file_name)
    return _execute(fields, model, records,
                    lambda record: _csv_row_to_kwargs(entity_type, record))


def import_records(session_ctx, entity_type: str, project_id: str, records,
                   system_id: str | None = None) -> dict:
    """Import JSON records straight into the table named by ``entity_type``."""
    if entity_type not in API_ENTITIES:
        raise ValidationError(
            f"Unknown entity_type: {entity_type}",
            details={"entity_type": sorted(API_ENTITIES)},
        )
    if not isinstance(records, list):
        raise ValidationError("data must be a list of records", details={"data": "list required"})
    _check_scope(project_id, system_id)

    model = API_ENTITIES[entity_type]
    fields = _log_fields(session_ctx, "api", entity_type, project_id, system_id, records)
    return _execute(fields, model, records, lambda record: _api_row_to_kwargs(model, record))


# ═══════════════════════════════════════════════════════════════
# History
# ═══════════════════════════════════════════════════════════════

def list_import_logs(project_id: str | None = None, limit: int = 100) -> list[dict]:
    q = ImportLog.query
    if project_id:
        q = q.filter_by(project_id=project_id)
    return [log.to_dict() for log in q.order_by(ImportLog.created_at.desc()).limit(limit).all()]
