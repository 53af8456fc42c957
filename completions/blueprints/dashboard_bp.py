"""
Dashboard Blueprint — read-only KPI views.

  GET /api/v1/systems/<id>/dashboard      — system + project + KPIs + subsystems
  GET /api/v1/systems/<id>/kpis           — system KPIs only
  GET /api/v1/subsystems/<id>/detail      — subsystem + KPIs + ITRs, punch list, tags
  GET /api/v1/subsystems/<id>/kpis        — subsystem KPIs only
"""

from flask import Blueprint, jsonify

from completions.core.exceptions import NotFoundError
from completions.models import db
from completions.models.project import Subsystem, System
from completions.services import kpi_service
from completions.utils.errors import register_error_handlers

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1")
register_error_handlers(dashboard_bp)


def _system_or_404(system_id) -> System:
    system = db.session.get(System, system_id)
    if system is None:
        raise NotFoundError(resource="System", resource_id=system_id)
    return system


def _subsystem_or_404(subsystem_id) -> Subsystem:
    subsystem = db.session.get(Subsystem, subsystem_id)
    if subsystem is None:
        raise NotFoundError(resource="Subsystem", resource_id=subsystem_id)
    return subsystem


@dashboard_bp.route("/systems/<system_id>/dashboard", methods=["GET"])
def system_dashboard(system_id):
    system = _system_or_404(system_id)
    subsystems = kpi_service.fetch_subsystems(system_id)
    return jsonify({
        "system": system.to_dict(include_project=True),
        "kpis": kpi_service.compute_system_kpis(system_id),
        "subsystems": [s.to_dict() for s in subsystems],
    })


@dashboard_bp.route("/systems/<system_id>/kpis", methods=["GET"])
def system_kpis(system_id):
    _system_or_404(system_id)
    return jsonify(kpi_service.compute_system_kpis(system_id))


@dashboard_bp.route("/subsystems/<subsystem_id>/detail", methods=["GET"])
def subsystem_detail(subsystem_id):
    subsystem = _subsystem_or_404(subsystem_id)
    ids = [subsystem_id]
    return jsonify({
        "subsystem": subsystem.to_dict(include_system=True),
        "kpis": kpi_service.compute_subsystem_kpis(subsystem_id),
        "itrs": [i.to_dict() for i in kpi_service.fetch_itrs(ids)],
        "punch_items": [p.to_dict() for p in kpi_service.fetch_punch_items(ids)],
        "tags": [t.to_dict() for t in kpi_service.fetch_or_empty(
            "tags", lambda: kpi_service.fetch_tags(ids)
        )],
    })


@dashboard_bp.route("/subsystems/<subsystem_id>/kpis", methods=["GET"])
def subsystem_kpis(subsystem_id):
    _subsystem_or_404(subsystem_id)
    return jsonify(kpi_service.compute_subsystem_kpis(subsystem_id))
