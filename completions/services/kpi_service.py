"""
KPI aggregation for systems and subsystems.

Every call re-reads the rows it needs and reduces them in Python; nothing is
cached or persisted.

Failure policy:
  - Subsystem, ITR and punch fetches propagate SQLAlchemyError to the caller.
  - The dependent Tag → PreservationTask chain goes through fetch_or_empty():
    a failed fetch becomes an empty list plus a warning, so a preservation
    gap degrades the counts to zero instead of failing the whole dashboard.
"""

import logging
from datetime import datetime, time, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError

from completions.models import db
from completions.models.completions import (
    ITR,
    PUNCH_CATEGORIES,
    PUNCH_OPEN_STATUSES,
    PreservationTask,
    PunchItem,
    Tag,
)
from completions.models.project import Subsystem

logger = logging.getLogger(__name__)

UPCOMING_WINDOW = timedelta(days=7)


# ═════════════════════════════════════════════════════════════════════════════
# Fetch layer (shared with the insight responder)
# ═════════════════════════════════════════════════════════════════════════════


def fetch_or_empty(label: str, fetch):
    """Run ``fetch()``; on a database error log a warning and return ``[]``."""
    try:
        return fetch()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning("Fetching %s failed, continuing with an empty set: %s", label, exc)
        return []


def fetch_subsystems(system_id: str) -> list[Subsystem]:
    return Subsystem.query.filter_by(system_id=system_id).order_by(Subsystem.code).all()


def fetch_itrs(subsystem_ids: list[str]) -> list[ITR]:
    if not subsystem_ids:
        return []
    return ITR.query.filter(ITR.subsystem_id.in_(subsystem_ids)).order_by(ITR.itr_code).all()


def fetch_punch_items(subsystem_ids: list[str]) -> list[PunchItem]:
    if not subsystem_ids:
        return []
    return PunchItem.query.filter(PunchItem.subsystem_id.in_(subsystem_ids)).all()


def fetch_tags(subsystem_ids: list[str]) -> list[Tag]:
    if not subsystem_ids:
        return []
    return Tag.query.filter(Tag.subsystem_id.in_(subsystem_ids)).all()


def fetch_preservation_tasks(tag_ids: list[str], status: str | None = None) -> list[PreservationTask]:
    if not tag_ids:
        return []
    q = PreservationTask.query.filter(PreservationTask.tag_id.in_(tag_ids))
    if status:
        q = q.filter(PreservationTask.status == status)
    return q.all()


def fetch_preservation_for(subsystem_ids: list[str], status: str | None = None) -> list[PreservationTask]:
    """Tags of the subsystems, then their tasks; both steps fail open."""
    tags = fetch_or_empty("tags", lambda: fetch_tags(subsystem_ids))
    tag_ids = [t.id for t in tags]
    return fetch_or_empty(
        "preservation_tasks", lambda: fetch_preservation_tasks(tag_ids, status)
    )


# ═════════════════════════════════════════════════════════════════════════════
# Reductions
# ═════════════════════════════════════════════════════════════════════════════


def percent_completed(completed: int, total: int) -> int:
    """100 * completed / total rounded half-up; 0 when there is nothing to complete."""
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


def summarize_itrs(itrs) -> dict:
    totals = {"A": 0, "B": 0}
    done = {"A": 0, "B": 0}
    for itr in itrs:
        if itr.itr_type not in totals:
            continue
        totals[itr.itr_type] += 1
        if itr.status == "COMPLETED":
            done[itr.itr_type] += 1
    return {
        "total_itr_a": totals["A"],
        "completed_itr_a": done["A"],
        "percent_itr_a_completed": percent_completed(done["A"], totals["A"]),
        "total_itr_b": totals["B"],
        "completed_itr_b": done["B"],
        "percent_itr_b_completed": percent_completed(done["B"], totals["B"]),
    }


def _due_datetime(value) -> datetime | None:
    """A due date as a UTC-midnight datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def is_upcoming(task, now: datetime) -> bool:
    """OK task due in ``(now, now + 7 days]``."""
    if task.status != "OK":
        return False
    due = _due_datetime(task.next_due_date)
    return due is not None and now < due <= now + UPCOMING_WINDOW


def summarize_preservation(tasks, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    return {
        "preservation_overdue_count": sum(1 for t in tasks if t.status == "OVERDUE"),
        "preservation_upcoming_count": sum(1 for t in tasks if is_upcoming(t, now)),
    }


# ═════════════════════════════════════════════════════════════════════════════
# Public API
# ═════════════════════════════════════════════════════════════════════════════


def compute_system_kpis(system_id: str, now: datetime | None = None) -> dict:
    """Completion KPIs for every subsystem of a system.

    Unknown systems and empty systems both yield all-zero counts.
    """
    subsystem_ids = [s.id for s in fetch_subsystems(system_id)]

    result = summarize_itrs(fetch_itrs(subsystem_ids))

    open_by_category = {category: 0 for category in PUNCH_CATEGORIES}
    closed = 0
    for item in fetch_punch_items(subsystem_ids):
        if item.status in PUNCH_OPEN_STATUSES:
            if item.category in open_by_category:
                open_by_category[item.category] += 1
        elif item.status == "CLOSED":
            closed += 1

    result.update(summarize_preservation(fetch_preservation_for(subsystem_ids), now))
    result.update({
        "punch_open_by_category": open_by_category,
        "punch_closed": closed,
        "has_critical_punch": open_by_category["A"] > 0,
        "has_incomplete_itr_b": result["completed_itr_b"] < result["total_itr_b"],
    })
    logger.debug("KPIs computed", extra={"system_id": system_id})
    return result


def compute_subsystem_kpis(subsystem_id: str, now: datetime | None = None) -> dict:
    """Completion KPIs for a single subsystem (no category breakdown, no flags)."""
    ids = [subsystem_id]
    result = summarize_itrs(fetch_itrs(ids))

    punch_items = fetch_punch_items(ids)
    result["punch_open"] = sum(1 for p in punch_items if p.status in PUNCH_OPEN_STATUSES)
    result["punch_closed"] = sum(1 for p in punch_items if p.status == "CLOSED")

    result.update(summarize_preservation(fetch_preservation_for(ids), now))
    return result
