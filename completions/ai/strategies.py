"""
Response strategies for the AI Copilot.

    Strategy = DelegatedStrategy(credential) | RuleBasedStrategy()

select_strategy() picks one from configuration exactly once per question.
Only a missing credential selects the rule-based responder; a provider
failure under the delegated strategy is raised, never downgraded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from completions.ai.gateway import ChatCompletionGateway
from completions.services.kpi_service import percent_completed

SYSTEM_PROMPT = (
    "Eres un asistente experto en gestión de completions para proyectos Oil & Gas. "
    "Analizas ITRs, punch lists y preservación de equipos. "
    "Proporciona respuestas claras, concisas y accionables basadas en los datos proporcionados."
)

FALLBACK_BANNER = "**[Modo sin IA externa - Respuesta basada en datos estructurados]**\n\n"


@dataclass
class SystemFacts:
    """Everything the responders know about one system, already reduced."""

    system: object
    subsystems: list
    itr_a_total: int = 0
    itr_a_completed: int = 0
    itr_b_total: int = 0
    itr_b_completed: int = 0
    # discipline -> pending ITR B count, in order of first occurrence
    itr_b_pending_by_discipline: dict = field(default_factory=dict)
    punch_a_open: list = field(default_factory=list)
    overdue_tasks: list = field(default_factory=list)

    @property
    def itr_a_percent(self) -> int:
        return percent_completed(self.itr_a_completed, self.itr_a_total)

    @property
    def itr_b_percent(self) -> int:
        return percent_completed(self.itr_b_completed, self.itr_b_total)

    @property
    def itr_b_pending(self) -> int:
        return self.itr_b_total - self.itr_b_completed

    @property
    def ready_for_energization(self) -> bool:
        return not self.punch_a_open and self.itr_b_completed >= self.itr_b_total


# ═════════════════════════════════════════════════════════════════════════════
# Delegated
# ═════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DelegatedStrategy:
    """Forward context + question to the chat-completions provider."""

    credential: str
    gateway: ChatCompletionGateway | None = field(default=None, compare=False, repr=False)
    name = "delegated"

    def respond(self, question: str, facts: SystemFacts, context: str, config=None) -> str:
        gateway = self.gateway or ChatCompletionGateway.from_config(
            config or {}, api_key=self.credential
        )
        return gateway.chat([
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"Contexto del proyecto:\n{context}\n\nPregunta del usuario: {question}",
            },
        ])


# ═════════════════════════════════════════════════════════════════════════════
# Rule-based
# ═════════════════════════════════════════════════════════════════════════════


def _readiness(facts: SystemFacts) -> str:
    if facts.ready_for_energization:
        return (
            "✅ El sistema cumple requisitos básicos para energización "
            "(todos los ITR B completados y sin punch A)\n"
        )
    text = "⚠️ El sistema NO está listo para energización:\n"
    if facts.punch_a_open:
        text += f"- Hay {len(facts.punch_a_open)} punch items categoría A pendientes\n"
    if facts.itr_b_pending > 0:
        text += f"- Faltan {facts.itr_b_pending} ITR B por completar\n"
    return text


def _itr_status(facts: SystemFacts) -> str:
    return (
        "📊 Estado de ITRs:\n"
        f"- ITR A: {facts.itr_a_completed}/{facts.itr_a_total} completados ({facts.itr_a_percent}%)\n"
        f"- ITR B: {facts.itr_b_completed}/{facts.itr_b_total} completados ({facts.itr_b_percent}%)\n"
    )


def _punch_status(facts: SystemFacts) -> str:
    text = "📋 Punch items críticos:\n"
    if facts.punch_a_open:
        return text + (
            f"- {len(facts.punch_a_open)} punch categoría A abiertos "
            "que requieren atención inmediata\n"
        )
    return text + "- No hay punch categoría A abiertos\n"


def _preservation_status(facts: SystemFacts) -> str:
    text = "🔧 Preservación:\n"
    if facts.overdue_tasks:
        return text + (
            f"- {len(facts.overdue_tasks)} tareas de preservación vencidas "
            "que requieren atención\n"
        )
    return text + "- No hay tareas de preservación vencidas\n"


def _general_summary(facts: SystemFacts) -> str:
    return (
        "Resumen general del sistema:\n"
        f"- ITR A: {facts.itr_a_percent}% completado\n"
        f"- ITR B: {facts.itr_b_percent}% completado\n"
        f"- Punch A abiertos: {len(facts.punch_a_open)}\n"
        f"- Preservaciones vencidas: {len(facts.overdue_tasks)}\n"
    )


# Checked top to bottom against the lowercased question; first hit wins.
ROUTES = (
    ("readiness", ("energización", "listo"), _readiness),
    ("itr", ("itr",), _itr_status),
    ("punch", ("punch",), _punch_status),
    ("preservation", ("preserv",), _preservation_status),
)


def route(question: str) -> str:
    """Name of the rule that answers ``question`` (``"general"`` if none matches)."""
    lowered = question.lower()
    for name, keywords, _ in ROUTES:
        if any(k in lowered for k in keywords):
            return name
    return "general"


@dataclass(frozen=True)
class RuleBasedStrategy:
    """Deterministic keyword-routed answers built from the reduced facts."""

    name = "rule_based"

    def respond(self, question: str, facts: SystemFacts, context: str = "", config=None) -> str:
        handlers = {name: handler for name, _, handler in ROUTES}
        handler = handlers.get(route(question), _general_summary)
        return FALLBACK_BANNER + handler(facts)


Strategy = Union[DelegatedStrategy, RuleBasedStrategy]


def select_strategy(config) -> Strategy:
    """Delegated when an AI credential is configured, rule-based otherwise."""
    credential = (config.get("AI_GATEWAY_API_KEY") or "").strip()
    if credential:
        return DelegatedStrategy(credential)
    return RuleBasedStrategy()
