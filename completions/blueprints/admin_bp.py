"""
Admin Blueprint — project hierarchy CRUD and ITR data management.

  GET    /api/v1/projects                 — List projects (by code)
  POST   /api/v1/projects                 — Create project
  GET    /api/v1/projects/<id>            — Project detail
  PUT    /api/v1/projects/<id>            — Update project
  DELETE /api/v1/projects/<id>            — Delete project (cascades)
  GET    /api/v1/systems?project_id=      — List systems with their project
  POST   /api/v1/systems                  — Create system
  GET/PUT/DELETE /api/v1/systems/<id>
  GET    /api/v1/subsystems?system_id=    — List subsystems with system + project
  POST   /api/v1/subsystems               — Create subsystem
  GET/PUT/DELETE /api/v1/subsystems/<id>
  GET    /api/v1/itrs                     — ITR listing (project/system/subsystem filters)
  POST   /api/v1/itrs/bulk-delete         — Delete ITRs by id

Service layer owns validation and commits.
"""

import logging

from flask import Blueprint, jsonify, request

from completions.auth import require_role
from completions.services import admin_service
from completions.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1")
register_error_handlers(admin_bp)

_WRITE_ROLES = ("MANAGER",)


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ═════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════


@admin_bp.route("/projects", methods=["GET"])
def list_projects():
    return jsonify(admin_service.list_projects())


@admin_bp.route("/projects", methods=["POST"])
@require_role(*_WRITE_ROLES)
def create_project():
    project = admin_service.create_project(_body())
    return jsonify(project.to_dict()), 201


@admin_bp.route("/projects/<project_id>", methods=["GET"])
def get_project(project_id):
    return jsonify(admin_service.get_project(project_id).to_dict())


@admin_bp.route("/projects/<project_id>", methods=["PUT"])
@require_role(*_WRITE_ROLES)
def update_project(project_id):
    return jsonify(admin_service.update_project(project_id, _body()).to_dict())


@admin_bp.route("/projects/<project_id>", methods=["DELETE"])
@require_role(*_WRITE_ROLES)
def delete_project(project_id):
    admin_service.delete_project(project_id)
    return jsonify({"deleted": True}), 200


# ═════════════════════════════════════════════════════════════════════════
# Systems
# ═════════════════════════════════════════════════════════════════════════


@admin_bp.route("/systems", methods=["GET"])
def list_systems():
    return jsonify(admin_service.list_systems(request.args.get("project_id")))


@admin_bp.route("/systems", methods=["POST"])
@require_role(*_WRITE_ROLES)
def create_system():
    system = admin_service.create_system(_body())
    return jsonify(system.to_dict(include_project=True)), 201


@admin_bp.route("/systems/<system_id>", methods=["GET"])
def get_system(system_id):
    return jsonify(admin_service.get_system(system_id).to_dict(include_project=True))


@admin_bp.route("/systems/<system_id>", methods=["PUT"])
@require_role(*_WRITE_ROLES)
def update_system(system_id):
    return jsonify(admin_service.update_system(system_id, _body()).to_dict(include_project=True))


@admin_bp.route("/systems/<system_id>", methods=["DELETE"])
@require_role(*_WRITE_ROLES)
def delete_system(system_id):
    admin_service.delete_system(system_id)
    return jsonify({"deleted": True}), 200


# ═════════════════════════════════════════════════════════════════════════
# Subsystems
# ═════════════════════════════════════════════════════════════════════════


@admin_bp.route("/subsystems", methods=["GET"])
def list_subsystems():
    return jsonify(admin_service.list_subsystems(request.args.get("system_id")))


@admin_bp.route("/subsystems", methods=["POST"])
@require_role(*_WRITE_ROLES)
def create_subsystem():
    subsystem = admin_service.create_subsystem(_body())
    return jsonify(subsystem.to_dict(include_system=True)), 201


@admin_bp.route("/subsystems/<subsystem_id>", methods=["GET"])
def get_subsystem(subsystem_id):
    return jsonify(admin_service.get_subsystem(subsystem_id).to_dict(include_system=True))


@admin_bp.route("/subsystems/<subsystem_id>", methods=["PUT"])
@require_role(*_WRITE_ROLES)
def update_subsystem(subsystem_id):
    subsystem = admin_service.update_subsystem(subsystem_id, _body())
    return jsonify(subsystem.to_dict(include_system=True))


@admin_bp.route("/subsystems/<subsystem_id>", methods=["DELETE"])
@require_role(*_WRITE_ROLES)
def delete_subsystem(subsystem_id):
    admin_service.delete_subsystem(subsystem_id)
    return jsonify({"deleted": True}), 200


# ═════════════════════════════════════════════════════════════════════════
# ITR data management
# ═════════════════════════════════════════════════════════════════════════


@admin_bp.route("/itrs", methods=["GET"])
def list_itrs():
    return jsonify(admin_service.list_itrs(
        project_id=request.args.get("project_id"),
        system_id=request.args.get("system_id"),
        subsystem_id=request.args.get("subsystem_id"),
    ))


@admin_bp.route("/itrs/bulk-delete", methods=["POST"])
@require_role(*_WRITE_ROLES)
def bulk_delete_itrs():
    deleted = admin_service.bulk_delete_itrs(_body().get("ids"))
    return jsonify({"deleted": deleted})
