"""Admin service layer — project/system/subsystem CRUD and ITR data management.

Transaction policy: public write functions call db.session.commit() on success.
Duplicate codes raise ConflictError before the INSERT/UPDATE is attempted.
"""
import logging

from completions.core.exceptions import ConflictError, NotFoundError, ValidationError
from completions.models import db
from completions.models.completions import ITR
from completions.models.project import (
    CRITICALITIES,
    PROJECT_STATUSES,
    SYSTEM_STATUSES,
    Project,
    Subsystem,
    System,
)
from completions.utils.helpers import parse_date

logger = logging.getLogger(__name__)

_PROJECT_FIELDS = ("code", "name", "description", "location", "status")
_SYSTEM_FIELDS = ("code", "name", "description", "status", "criticality")
_SUBSYSTEM_FIELDS = ("code", "name", "description", "status")
_SUBSYSTEM_DATES = (
    "planned_start_date", "planned_end_date", "actual_start_date", "actual_end_date",
)


def _validate_enum(value, allowed: set[str], field_name: str) -> None:
    if value is not None and value not in allowed:
        raise ValidationError(
            f"Invalid {field_name}: '{value}'. Allowed: {sorted(allowed)}",
            details={field_name: sorted(allowed)},
            status_code=422,
        )


def _require(data: dict, *fields: str) -> None:
    missing = [f for f in fields if not str(data.get(f) or "").strip()]
    if missing:
        raise ValidationError(
            f"{', '.join(missing)} required",
            details={f: "required" for f in missing},
        )


def _apply(obj, data: dict, fields) -> None:
    for field in fields:
        if field in data:
            value = data[field]
            setattr(obj, field, value.strip() if isinstance(value, str) else value)


def _get(model, pk, label=None):
    obj = db.session.get(model, pk)
    if obj is None:
        raise NotFoundError(resource=label or model.__name__, resource_id=pk)
    return obj


# ═════════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════════


def list_projects() -> list[dict]:
    return [p.to_dict() for p in Project.query.order_by(Project.code).all()]


def get_project(project_id: str) -> Project:
    return _get(Project, project_id)


def create_project(data: dict) -> Project:
    _require(data, "code", "name")
    _validate_enum(data.get("status"), PROJECT_STATUSES, "status")
    code = data["code"].strip()
    if Project.query.filter_by(code=code).first():
        raise ConflictError("Project", "code", code)

    project = Project()
    _apply(project, data, _PROJECT_FIELDS)
    db.session.add(project)
    db.session.commit()
    logger.info("Project created: %s", project.code, extra={"project_id": project.id})
    return project


def update_project(project_id: str, data: dict) -> Project:
    project = get_project(project_id)
    _validate_enum(data.get("status"), PROJECT_STATUSES, "status")
    code = (data.get("code") or "").strip()
    if code and code != project.code and Project.query.filter_by(code=code).first():
        raise ConflictError("Project", "code", code)
    _apply(project, data, _PROJECT_FIELDS)
    db.session.commit()
    return project


def delete_project(project_id: str) -> None:
    project = get_project(project_id)
    db.session.delete(project)
    db.session.commit()
    logger.info("Project deleted: %s", project_id, extra={"project_id": project_id})


# ═════════════════════════════════════════════════════════════════════════════
# Systems
# ═════════════════════════════════════════════════════════════════════════════


def list_systems(project_id: str | None = None) -> list[dict]:
    q = System.query
    if project_id:
        q = q.filter_by(project_id=project_id)
    return [s.to_dict(include_project=True) for s in q.order_by(System.code).all()]


def get_system(system_id: str) -> System:
    return _get(System, system_id)


def create_system(data: dict) -> System:
    _require(data, "project_id", "code", "name")
    _validate_enum(data.get("status"), SYSTEM_STATUSES, "status")
    _validate_enum(data.get("criticality"), CRITICALITIES, "criticality")
    project = _get(Project, data["project_id"])
    code = data["code"].strip()
    if System.query.filter_by(project_id=project.id, code=code).first():
        raise ConflictError("System", "code", code)

    system = System(project_id=project.id)
    _apply(system, data, _SYSTEM_FIELDS)
    db.session.add(system)
    db.session.commit()
    logger.info("System created: %s", system.code,
                extra={"project_id": project.id, "system_id": system.id})
    return system


def update_system(system_id: str, data: dict) -> System:
    system = get_system(system_id)
    _validate_enum(data.get("status"), SYSTEM_STATUSES, "status")
    _validate_enum(data.get("criticality"), CRITICALITIES, "criticality")
    code = (data.get("code") or "").strip()
    if (
        code and code != system.code
        and System.query.filter_by(project_id=system.project_id, code=code).first()
    ):
        raise ConflictError("System", "code", code)
    _apply(system, data, _SYSTEM_FIELDS)
    db.session.commit()
    return system


def delete_system(system_id: str) -> None:
    system = get_system(system_id)
    db.session.delete(system)
    db.session.commit()
    logger.info("System deleted", extra={"system_id": system_id})


# ═════════════════════════════════════════════════════════════════════════════
# Subsystems
# ═════════════════════════════════════════════════════════════════════════════


def list_subsystems(system_id: str | None = None) -> list[dict]:
    q = Subsystem.query
    if system_id:
        q = q.filter_by(system_id=system_id)
    return [s.to_dict(include_system=True) for s in q.order_by(Subsystem.code).all()]


def get_subsystem(subsystem_id: str) -> Subsystem:
    return _get(Subsystem, subsystem_id)


def _apply_subsystem_dates(subsystem: Subsystem, data: dict) -> None:
    for field in _SUBSYSTEM_DATES:
        if field in data:
            value = parse_date(data[field])
            if data[field] and value is None:
                raise ValidationError(f"Invalid date for {field}", details={field: data[field]})
            setattr(subsystem, field, value)


def create_subsystem(data: dict) -> Subsystem:
    _require(data, "system_id", "code", "name")
    _validate_enum(data.get("status"), SYSTEM_STATUSES, "status")
    system = _get(System, data["system_id"])
    code = data["code"].strip()
    if Subsystem.query.filter_by(system_id=system.id, code=code).first():
        raise ConflictError("Subsystem", "code", code)

    subsystem = Subsystem(system_id=system.id)
    _apply(subsystem, data, _SUBSYSTEM_FIELDS)
    _apply_subsystem_dates(subsystem, data)
    db.session.add(subsystem)
    db.session.commit()
    logger.info("Subsystem created: %s", subsystem.code, extra={"system_id": system.id})
    return subsystem


def update_subsystem(subsystem_id: str, data: dict) -> Subsystem:
    subsystem = get_subsystem(subsystem_id)
    _validate_enum(data.get("status"), SYSTEM_STATUSES, "status")
    code = (data.get("code") or "").strip()
    if (
        code and code != subsystem.code
        and Subsystem.query.filter_by(system_id=subsystem.system_id, code=code).first()
    ):
        raise ConflictError("Subsystem", "code", code)
    _apply(subsystem, data, _SUBSYSTEM_FIELDS)
    _apply_subsystem_dates(subsystem, data)
    db.session.commit()
    return subsystem


def delete_subsystem(subsystem_id: str) -> None:
    subsystem = get_subsystem(subsystem_id)
    db.session.delete(subsystem)
    db.session.commit()


# ═════════════════════════════════════════════════════════════════════════════
# ITR data management
# ═════════════════════════════════════════════════════════════════════════════


def list_itrs(project_id=None, system_id=None, subsystem_id=None) -> list[dict]:
    """ITRs joined through subsystem → system → project, newest first."""
    q = (
        db.session.query(ITR, Subsystem, System, Project)
        .join(Subsystem, ITR.subsystem_id == Subsystem.id)
        .join(System, Subsystem.system_id == System.id)
        .join(Project, System.project_id == Project.id)
    )
    if subsystem_id:
        q = q.filter(ITR.subsystem_id == subsystem_id)
    elif system_id:
        q = q.filter(Subsystem.system_id == system_id)
    elif project_id:
        q = q.filter(System.project_id == project_id)

    rows = []
    for itr, subsystem, system, project in q.order_by(ITR.created_at.desc()).all():
        d = itr.to_dict()
        d["subsystem"] = {"code": subsystem.code, "name": subsystem.name}
        d["system"] = {"code": system.code, "name": system.name}
        d["project"] = {"code": project.code, "name": project.name}
        rows.append(d)
    return rows


def bulk_delete_itrs(ids: list[str]) -> int:
    if not ids or not isinstance(ids, list):
        raise ValidationError("ids must be a non-empty list", details={"ids": "required"})
    deleted = ITR.query.filter(ITR.id.in_(ids)).delete(synchronize_session=False)
    db.session.commit()
    logger.info("Bulk-deleted %d ITRs", deleted)
    return deleted
