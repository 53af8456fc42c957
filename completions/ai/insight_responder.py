"""
Insight responder — answers a free-text question about one system.

Flow:
    1. gather_facts(): system, subsystems, ITRs, punch items, overdue preservation
    2. build_context(): deterministic plain-text block (also returned to the user)
    3. strategy.respond(): delegated to the AI provider, or rule-based
    4. persist an Insight row (title = first 100 characters of the question)

Fetch and provider errors propagate; nothing is retried. If the answer
cannot be generated no Insight is written. A failed Insight write is
logged and the answer is still returned.
"""

import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from completions.ai.strategies import Strategy, SystemFacts, select_strategy
from completions.core.exceptions import NotFoundError, ValidationError
from completions.models import db
from completions.models.completions import PUNCH_OPEN_STATUSES
from completions.models.insight import Insight
from completions.models.project import Subsystem, System
from completions.services import kpi_service

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100

NO_PUNCH_A = "No hay punch categoría A abiertos"
NO_OVERDUE = "No hay preservaciones vencidas"


def gather_facts(system_id: str, project_id: str | None = None,
                 subsystem_id: str | None = None) -> SystemFacts:
    """Collect the facts for ``system_id``.

    When given, ``project_id`` must own the system and ``subsystem_id``
    must sit under it.
    """
    system = db.session.get(System, system_id)
    if system is None:
        raise NotFoundError(resource="System", resource_id=system_id)
    if project_id is not None and system.project_id != project_id:
        raise ValidationError(
            "System does not belong to project",
            details={"project_id": project_id, "system_id": system_id},
        )
    if subsystem_id:
        subsystem = db.session.get(Subsystem, subsystem_id)
        if subsystem is None or subsystem.system_id != system_id:
            raise ValidationError(
                "Subsystem does not belong to system",
                details={"subsystem_id": subsystem_id, "system_id": system_id},
            )

    subsystems = kpi_service.fetch_subsystems(system_id)
    subsystem_ids = [s.id for s in subsystems]

    facts = SystemFacts(system=system, subsystems=subsystems)
    for itr in kpi_service.fetch_itrs(subsystem_ids):
        if itr.itr_type == "A":
            facts.itr_a_total += 1
            if itr.status == "COMPLETED":
                facts.itr_a_completed += 1
        elif itr.itr_type == "B":
            facts.itr_b_total += 1
            if itr.status == "COMPLETED":
                facts.itr_b_completed += 1
            else:
                pending = facts.itr_b_pending_by_discipline
                pending[itr.discipline] = pending.get(itr.discipline, 0) + 1

    facts.punch_a_open = [
        p for p in kpi_service.fetch_punch_items(subsystem_ids)
        if p.category == "A" and p.status in PUNCH_OPEN_STATUSES
    ]
    facts.overdue_tasks = kpi_service.fetch_preservation_for(subsystem_ids, status="OVERDUE")
    return facts


def build_context(facts: SystemFacts) -> str:
    system = facts.system
    project = system.project
    lines = [
        f"Proyecto: {project.name} ({project.code})",
        f"Sistema: {system.name} ({system.code})",
        f"Estado del sistema: {system.status}",
        "",
        "RESUMEN DE ITRs:",
        f"- ITR A: {facts.itr_a_completed} de {facts.itr_a_total} completados ({facts.itr_a_percent}%)",
        f"- ITR B: {facts.itr_b_completed} de {facts.itr_b_total} completados ({facts.itr_b_percent}%)",
        "- ITR B pendientes por disciplina:",
    ]
    lines += [f"  - {disc}: {count}" for disc, count in facts.itr_b_pending_by_discipline.items()]

    lines += ["", "PUNCH ITEMS CRÍTICOS (Categoría A abiertos):"]
    if facts.punch_a_open:
        lines += [
            f"- {p.description} (vence: {p.due_date.isoformat() if p.due_date else 'sin fecha'})"
            for p in facts.punch_a_open
        ]
    else:
        lines.append(NO_PUNCH_A)

    lines += ["", "PRESERVACIONES VENCIDAS:"]
    if facts.overdue_tasks:
        lines += [
            f"- Tag {t.tag.tag_code if t.tag else '?'}: {t.description} "
            f"(vencida desde {t.next_due_date.isoformat()})"
            for t in facts.overdue_tasks
        ]
    else:
        lines.append(NO_OVERDUE)

    lines += ["", "SUBSISTEMAS:"]
    lines += [f"- {s.code}: {s.name} ({s.status})" for s in facts.subsystems]
    return "\n".join(lines) + "\n"


def _save_insight(question, response, project_id, system_id, subsystem_id):
    insight = Insight(
        project_id=project_id,
        system_id=system_id,
        subsystem_id=subsystem_id or None,
        title=question[:TITLE_MAX_LENGTH],
        content=response,
    )
    try:
        db.session.add(insight)
        db.session.commit()
        return insight.id
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning("Could not persist insight", exc_info=True,
                       extra={"project_id": project_id, "system_id": system_id})
        return None


def answer_question(
    question: str,
    project_id: str,
    system_id: str,
    subsystem_id: str | None = None,
    strategy: Strategy | None = None,
) -> dict:
    """Answer ``question`` for a system and record it as an Insight.

    Returns ``{"response", "context", "strategy", "insight_id"}``.

    Raises:
        ValidationError: question, project_id or system_id missing, or the
            ids do not form one project / system / subsystem chain.
        NotFoundError: unknown system.
        ProviderError: the delegated provider failed.
    """
    if question is not None and not isinstance(question, str):
        raise ValidationError("question must be a string", details={"question": "string required"})
    question = question or ""
    missing = [
        name for name, value in (
            ("question", question.strip()), ("project_id", project_id), ("system_id", system_id),
        ) if not value
    ]
    if missing:
        raise ValidationError(
            f"{', '.join(missing)} required", details={m: "required" for m in missing}
        )

    strategy = strategy or select_strategy(current_app.config)

    facts = gather_facts(system_id, project_id, subsystem_id)
    context = build_context(facts)
    response = strategy.respond(question, facts, context, current_app.config)

    insight_id = _save_insight(question, response, project_id, system_id, subsystem_id)
    logger.info("Question answered", extra={
        "project_id": project_id, "system_id": system_id, "strategy": strategy.name,
    })
    return {
        "response": response,
        "context": context,
        "strategy": strategy.name,
        "insight_id": insight_id,
    }
