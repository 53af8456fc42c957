"""
Demo data seeding.

One project → one system → two subsystems carrying the reference dashboard
scenario:
  - 10 ITR A (7 completed), 5 ITR B (2 completed)
  - punch: 2 open category A, 1 open category B, 3 closed
  - preservation: 1 overdue, 1 due within the week, 1 due next month

The caller commits.
"""

import logging
from datetime import date, timedelta

from completions.models import db
from completions.models.completions import ITR, PreservationTask, PunchItem, Tag
from completions.models.project import Project, Subsystem, System

logger = logging.getLogger(__name__)

SUBSYSTEMS = [
    ("SS-101", "Bombas de crudo", "IN_PROGRESS"),
    ("SS-102", "Instrumentación de campo", "NOT_STARTED"),
]

# (subsystem index, itr_type, discipline, status)
ITRS = (
    [(0, "A", "MECH", "COMPLETED")] * 4
    + [(1, "A", "ELEC", "COMPLETED")] * 3
    + [(0, "A", "MECH", "IN_PROGRESS"), (1, "A", "INST", "NOT_STARTED"),
       (1, "A", "ELEC", "REJECTED")]
    + [(0, "B", "MECH", "COMPLETED"), (1, "B", "INST", "COMPLETED"),
       (0, "B", "ELEC", "NOT_STARTED"), (1, "B", "INST", "IN_PROGRESS"),
       (1, "B", "ELEC", "NOT_STARTED")]
)

# (subsystem index, category, status, description, days until due)
PUNCH_ITEMS = [
    (0, "A", "OPEN", "Falta soporte en línea de descarga", 5),
    (1, "A", "IN_PROGRESS", "Cable de control sin identificar", 10),
    (0, "B", "OPEN", "Pintura dañada en brida", 20),
    (0, "A", "CLOSED", "Válvula de alivio sin certificado", -10),
    (1, "C", "CLOSED", "Etiqueta faltante", -5),
    (1, "B", "CLOSED", "Conduit sin sellar", -3),
]

# (subsystem index, tag_code, discipline, device_type, criticality)
TAGS = [
    (0, "P-101A", "MECH", "PUMP", "HIGH"),
    (1, "FT-102", "INST", "TRANSMITTER", "MEDIUM"),
]

# (tag index, description, frequency, days until due, status)
PRESERVATION = [
    (0, "Rotación manual del eje", 7, -4, "OVERDUE"),
    (0, "Inspección de sellos", 14, 3, "OK"),
    (1, "Verificación de desecante", 30, 30, "OK"),
]


def seed_demo_project(code: str = "DEMO-01", today: date | None = None) -> Project:
    """Create the demo hierarchy and return the project (flushed, not committed)."""
    today = today or date.today()

    project = Project(code=code, name="Planta de Procesamiento Demo",
                      location="Neuquén", status="COMPLETIONS")
    db.session.add(project)
    db.session.flush()

    system = System(project_id=project.id, code="SYS-100", name="Sistema de transferencia de crudo",
                    status="IN_PROGRESS", criticality="HIGH")
    db.session.add(system)
    db.session.flush()

    subsystems = []
    for ss_code, name, status in SUBSYSTEMS:
        subsystem = Subsystem(system_id=system.id, code=ss_code, name=name, status=status)
        db.session.add(subsystem)
        subsystems.append(subsystem)
    db.session.flush()

    for n, (idx, itr_type, discipline, status) in enumerate(ITRS, 1):
        db.session.add(ITR(
            subsystem_id=subsystems[idx].id,
            itr_code=f"ITR-{itr_type}-{n:03d}",
            itr_type=itr_type,
            discipline=discipline,
            status=status,
        ))

    for idx, category, status, description, due_in in PUNCH_ITEMS:
        db.session.add(PunchItem(
            subsystem_id=subsystems[idx].id,
            category=category,
            status=status,
            description=description,
            raised_by="QA/QC",
            due_date=today + timedelta(days=due_in),
            closed_date=today if status == "CLOSED" else None,
        ))

    tags = []
    for idx, tag_code, discipline, device_type, criticality in TAGS:
        tag = Tag(subsystem_id=subsystems[idx].id, tag_code=tag_code, discipline=discipline,
                  device_type=device_type, criticality=criticality)
        db.session.add(tag)
        tags.append(tag)
    db.session.flush()

    for idx, description, frequency, due_in, status in PRESERVATION:
        db.session.add(PreservationTask(
            tag_id=tags[idx].id,
            description=description,
            frequency_days=frequency,
            next_due_date=today + timedelta(days=due_in),
            status=status,
        ))
    db.session.flush()

    logger.info("Demo project %s seeded", code, extra={"project_id": project.id})
    return project
