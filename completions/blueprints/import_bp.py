"""
Import Blueprint — bulk data loading.

  POST /api/v1/import/csv                  — multipart: file, entity_type, project_id, system_id?
  POST /api/v1/import/api                  — JSON: { entity_type, project_id, system_id?, data: [...] }
  GET  /api/v1/import/template/<type>      — CSV template download
  GET  /api/v1/import/logs?project_id=     — import history, newest first

Both import endpoints need a signed-in user; the ImportLog records who ran it.
"""

import logging

from flask import Blueprint, Response, jsonify, request

from completions.auth import current_session, require_session
from completions.services import import_service
from completions.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

import_bp = Blueprint("import", __name__, url_prefix="/api/v1/import")
register_error_handlers(import_bp)


@import_bp.route("/csv", methods=["POST"])
@require_session
def import_csv():
    upload = request.files.get("file")
    entity_type = request.form.get("entity_type", "").strip()
    project_id = request.form.get("project_id", "").strip()
    if not upload or not entity_type or not project_id:
        return api_error(E.VALIDATION_REQUIRED, "file, entity_type and project_id are required")
    if not upload.filename.lower().endswith(".csv"):
        return api_error(E.VALIDATION_INVALID, "Only .csv files are accepted")

    result = import_service.import_csv(
        current_session(),
        upload.filename,
        upload.read(),
        entity_type,
        project_id,
        request.form.get("system_id") or None,
    )
    return jsonify(result)


@import_bp.route("/api", methods=["POST"])
@require_session
def import_api():
    data = request.get_json(silent=True) or {}
    if not data.get("entity_type") or not data.get("project_id") or not isinstance(data.get("data"), list):
        return api_error(E.VALIDATION_REQUIRED, "entity_type, project_id and data[] are required")

    result = import_service.import_records(
        current_session(),
        data["entity_type"],
        data["project_id"],
        data["data"],
        data.get("system_id"),
    )
    return jsonify(result)


@import_bp.route("/template/<entity_type>", methods=["GET"])
def download_template(entity_type):
    content = import_service.generate_csv_template(entity_type)
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="template_{entity_type}.csv"'},
    )


@import_bp.route("/logs", methods=["GET"])
def list_logs():
    limit = min(request.args.get("limit", 100, type=int), 500)
    return jsonify(import_service.list_import_logs(request.args.get("project_id"), limit=limit))
