"""AI Copilot API tests — /ai/query and /ai/insights."""

import pytest

from completions.ai.gateway import ChatCompletionGateway
from completions.ai.strategies import FALLBACK_BANNER
from completions.models.insight import Insight


class _FailingSession:
    def post(self, url, **kwargs):
        return _Response()


class _Response:
    status_code = 503
    ok = False
    text = "upstream unavailable"


@pytest.fixture()
def provider_down(app, monkeypatch):
    """Configure a credential and make every provider call answer HTTP 503."""
    monkeypatch.setitem(app.config, "AI_GATEWAY_API_KEY", "sk-test")
    monkeypatch.setattr(ChatCompletionGateway, "session", property(lambda self: _FailingSession()))


def _ask(client, demo, question, **extra):
    return client.post("/api/v1/ai/query", json={
        "question": question,
        "project_id": demo["project_id"],
        "system_id": demo["system_id"],
        **extra,
    })


def test_query_rule_based(client, demo):
    res = _ask(client, demo, "¿Está listo para energización?")
    assert res.status_code == 200
    data = res.get_json()
    assert data["strategy"] == "rule_based"
    assert data["response"].startswith(FALLBACK_BANNER)
    assert "- Faltan 3 ITR B por completar" in data["response"]
    assert "RESUMEN DE ITRs:" in data["context"]
    assert data["insight_id"]


@pytest.mark.parametrize("missing", ["question", "project_id", "system_id"])
def test_query_missing_fields(client, demo, missing):
    body = {"question": "hola", "project_id": demo["project_id"], "system_id": demo["system_id"]}
    body.pop(missing)
    res = client.post("/api/v1/ai/query", json=body)
    assert res.status_code == 400
    assert missing in res.get_json()["details"]


def test_query_unknown_system(client, demo):
    res = client.post("/api/v1/ai/query", json={
        "question": "hola", "project_id": demo["project_id"], "system_id": "missing",
    })
    assert res.status_code == 404


def test_query_non_string_question(client, demo):
    res = _ask(client, demo, 123)
    assert res.status_code == 400
    assert "question" in res.get_json()["details"]


def test_query_foreign_scope_is_rejected(client, demo):
    res = _ask(client, demo, "hola", subsystem_id="also-nope")
    assert res.status_code == 400
    res = client.post("/api/v1/ai/query", json={
        "question": "hola", "project_id": "nope", "system_id": demo["system_id"],
    })
    assert res.status_code == 400
    assert Insight.query.count() == 0


def test_provider_failure_is_502_and_not_recorded(client, demo, provider_down):
    res = _ask(client, demo, "¿Está listo?")
    assert res.status_code == 502
    body = res.get_json()
    assert body["code"] == "ERR_PROVIDER"
    assert body["details"] == {"provider_status": 503}
    assert Insight.query.count() == 0


def test_insights_history(client, demo):
    _ask(client, demo, "primera")
    _ask(client, demo, "segunda", subsystem_id=demo["subsystem_ids"][0])

    res = client.get(f"/api/v1/ai/insights?system_id={demo['system_id']}")
    assert res.status_code == 200
    insights = res.get_json()
    assert {i["title"] for i in insights} == {"primera", "segunda"}
    assert insights[0]["system"]["code"] == "SYS-100"
    assert insights[0]["project"]["code"] == "DEMO-01"

    assert len(client.get("/api/v1/ai/insights?limit=1").get_json()) == 1
    assert client.get("/api/v1/ai/insights?project_id=other").get_json() == []
