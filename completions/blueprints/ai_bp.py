"""
AI Copilot Blueprint.

  POST /api/v1/ai/query      — answer a question about a system
       Body: { "question", "project_id", "system_id", "subsystem_id"? }
       Returns: { "response", "context", "strategy", "insight_id" }
  GET  /api/v1/ai/insights   — insight history, newest first
       Query: project_id?, system_id?, limit? (default 50)
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from completions import limiter
from completions.ai.gateway import ProviderError
from completions.ai.insight_responder import answer_question
from completions.models.insight import Insight
from completions.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

ai_bp = Blueprint("ai", __name__, url_prefix="/api/v1/ai")
register_error_handlers(ai_bp)


@ai_bp.errorhandler(ProviderError)
def _handle_provider_error(error: ProviderError):
    return api_error(E.PROVIDER, str(error),
                     details={"provider_status": error.status_code} if error.status_code else None)


@ai_bp.route("/query", methods=["POST"])
@limiter.limit(lambda: current_app.config.get("AI_QUERY_RATE_LIMIT", "30/minute"))
def query():
    data = request.get_json(silent=True) or {}
    result = answer_question(
        data.get("question"),
        data.get("project_id"),
        data.get("system_id"),
        data.get("subsystem_id"),
    )
    return jsonify(result)


@ai_bp.route("/insights", methods=["GET"])
def list_insights():
    q = Insight.query
    if request.args.get("project_id"):
        q = q.filter_by(project_id=request.args["project_id"])
    if request.args.get("system_id"):
        q = q.filter_by(system_id=request.args["system_id"])
    limit = min(request.args.get("limit", 50, type=int), 200)
    insights = q.order_by(Insight.created_at.desc()).limit(limit).all()
    return jsonify([i.to_dict(include_refs=True) for i in insights])
