"""
Export Blueprint — Power BI reporting snapshot.

    GET /api/v1/export/powerbi
        project_id: required
        system_id:  optional, restricts the snapshot to one system
        format:     json | xlsx (default: json)

No temp files; content is built in memory.
"""

import json
import logging

from flask import Blueprint, Response, request, send_file

from completions.services.export_service import (
    build_project_snapshot,
    export_filename,
    snapshot_to_xlsx,
)
from completions.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

export_bp = Blueprint("export", __name__, url_prefix="/api/v1/export")
register_error_handlers(export_bp)

_XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@export_bp.route("/powerbi", methods=["GET"])
def export_powerbi():
    project_id = request.args.get("project_id", "").strip()
    fmt = request.args.get("format", "json").lower()
    if fmt not in ("json", "xlsx"):
        return api_error(E.VALIDATION_INVALID, "Unsupported format. Supported values: json, xlsx.")
    if not project_id:
        return api_error(E.VALIDATION_REQUIRED, "project_id is required")

    snapshot = build_project_snapshot(project_id, request.args.get("system_id") or None)

    if fmt == "xlsx":
        return send_file(
            snapshot_to_xlsx(snapshot),
            mimetype=_XLSX_MIME,
            as_attachment=True,
            download_name=export_filename(project_id, "xlsx"),
        )
    return Response(
        json.dumps(snapshot, ensure_ascii=False),
        mimetype="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(project_id)}"',
        },
    )
