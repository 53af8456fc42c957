"""Request timing middleware and logging configuration tests."""

import json
import logging

from completions.middleware.logging_config import JSONFormatter


class TestRequestTiming:
    def test_duration_header(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert float(res.headers["X-Request-Duration-Ms"]) >= 0

    def test_request_id_generated(self, client):
        res = client.get("/api/v1/projects")
        assert len(res.headers["X-Request-ID"]) == 12

    def test_request_id_preserved(self, client):
        res = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
        assert res.headers["X-Request-ID"] == "req-123"

    def test_unknown_route_is_json_404(self, client):
        res = client.get("/api/v1/nowhere")
        assert res.status_code == 404
        assert res.get_json()["details"]["path"] == "/api/v1/nowhere"


class TestJSONFormatter:
    def test_extra_fields_are_emitted(self):
        record = logging.LogRecord(
            "completions.test", logging.INFO, __file__, 1, "Question answered", None, None,
        )
        record.system_id = "sys-1"
        record.strategy = "rule_based"

        payload = json.loads(JSONFormatter().format(record))
        assert payload["message"] == "Question answered"
        assert payload["level"] == "INFO"
        assert payload["system_id"] == "sys-1"
        assert payload["strategy"] == "rule_based"
