"""
Power BI export — one project (optionally one system) as a reporting snapshot.

build_project_snapshot() returns the JSON document; snapshot_to_xlsx()
renders the same snapshot as a workbook with one sheet per entity plus a
KPI summary sheet.
"""

import io
import logging
from datetime import datetime, timezone

from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from completions.core.exceptions import NotFoundError, ValidationError
from completions.models import db
from completions.models.project import Project, System
from completions.services import kpi_service

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="1F3A5F", end_color="1F3A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

_ENTITY_SHEETS = (
    ("systems", "Systems"),
    ("subsystems", "Subsystems"),
    ("itrs", "ITRs"),
    ("tags", "Tags"),
    ("punch_items", "Punch Items"),
    ("preservation_tasks", "Preservation"),
)


def export_filename(project_id: str, fmt: str = "json") -> str:
    return f"powerbi-export-{project_id}.{fmt}"


def build_project_snapshot(project_id: str, system_id: str | None = None) -> dict:
    """Every entity under a project plus a small KPI rollup."""
    if not project_id:
        raise ValidationError("project_id is required", details={"project_id": "required"})
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)

    q = System.query.filter_by(project_id=project_id)
    if system_id:
        q = q.filter_by(id=system_id)
    systems = q.order_by(System.code).all()

    subsystems = [s for system in systems for s in kpi_service.fetch_subsystems(system.id)]
    subsystem_ids = [s.id for s in subsystems]
    itrs = kpi_service.fetch_itrs(subsystem_ids)
    tags = kpi_service.fetch_tags(subsystem_ids)
    punch_items = kpi_service.fetch_punch_items(subsystem_ids)
    preservation_tasks = kpi_service.fetch_preservation_tasks([t.id for t in tags])

    snapshot = {
        "metadata": {
            "project": project.to_dict(),
            "export_date": datetime.now(timezone.utc).isoformat(),
            "systems_count": len(systems),
            "subsystems_count": len(subsystems),
        },
        "systems": [s.to_dict() for s in systems],
        "subsystems": [s.to_dict() for s in subsystems],
        "itrs": [i.to_dict() for i in itrs],
        "tags": [t.to_dict() for t in tags],
        "punch_items": [p.to_dict() for p in punch_items],
        "preservation_tasks": [p.to_dict() for p in preservation_tasks],
        "kpis": {
            "total_itrs": len(itrs),
            "completed_itrs": sum(1 for i in itrs if i.status == "COMPLETED"),
            "total_punch_a": sum(1 for p in punch_items if p.category == "A"),
            "open_punch_a": sum(
                1 for p in punch_items if p.category == "A" and p.status == "OPEN"
            ),
            "overdue_preservation": sum(
                1 for p in preservation_tasks if p.status == "OVERDUE"
            ),
        },
    }
    logger.info("Export snapshot built: %d systems, %d ITRs", len(systems), len(itrs),
                extra={"project_id": project_id, "system_id": system_id})
    return snapshot


def _write_table(ws, rows: list[dict]) -> None:
    if not rows:
        ws.cell(row=1, column=1, value="Sin datos")
        return
    headers = list(rows[0])
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
    for r, row in enumerate(rows, 2):
        for col, header in enumerate(headers, 1):
            ws.cell(row=r, column=col, value=row.get(header)).border = THIN_BORDER
    for col, header in enumerate(headers, 1):
        ws.column_dimensions[get_column_letter(col)].width = max(12, min(len(header) + 4, 40))
    ws.freeze_panes = "A2"


def snapshot_to_xlsx(snapshot: dict) -> io.BytesIO:
    """Render a snapshot as a workbook. Returns a BytesIO ready for send_file."""
    wb = Workbook()

    ws = wb.active
    ws.title = "KPIs"
    project = snapshot["metadata"]["project"]
    ws["A1"] = f"Power BI export — {project['name']} ({project['code']})"
    ws["A1"].font = Font(size=14, bold=True)
    ws["A2"] = f"Generated: {snapshot['metadata']['export_date']}"
    ws["A2"].font = Font(size=10, italic=True, color="666666")

    row = 4
    for col, header in enumerate(("KPI", "Value"), 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
    for name, value in snapshot["kpis"].items():
        row += 1
        ws.cell(row=row, column=1, value=name).border = THIN_BORDER
        ws.cell(row=row, column=2, value=value).border = THIN_BORDER
    ws.column_dimensions["A"].width = 28
    ws.column_dimensions["B"].width = 12

    for key, title in _ENTITY_SHEETS:
        _write_table(wb.create_sheet(title), snapshot.get(key, []))

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf
