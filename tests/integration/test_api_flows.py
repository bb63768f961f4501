"""End-to-end flows through the HTTP surface using an isolated sqlite file."""

import pytest

from orchsim.config import SIMULATED_ERROR_BODY
from orchsim.store import db


def _create_env(client, code="DEV", **extra):
    payload = {"name": f"{code} env", "code": code, **extra}
    resp = client.post("/environments", json=payload)
    assert resp.status_code == 201
    return resp.json()


class TestEnvironments:
    def test_crud_and_duplicate_code(self, client):
        env = _create_env(client)
        assert client.post("/environments", json={"name": "again", "code": "DEV"}).status_code == 409

        resp = client.put(f"/environments/{env['id']}", json={"orchestrator_base_url": "http://orc"})
        assert resp.json()["orchestrator_base_url"] == "http://orc"
        assert resp.json()["name"] == "DEV env"

        assert len(client.get("/environments").json()) == 1
        assert client.delete(f"/environments/{env['id']}").json() == {"deleted": True}
        assert client.get(f"/environments/{env['id']}").status_code == 404

    def test_null_for_required_fields_is_ignored(self, client):
        env = _create_env(client)
        resp = client.put(f"/environments/{env['id']}",
                          json={"name": None, "code": None, "auth_config": None, "auth_type": "bearer"})
        assert resp.status_code == 200
        assert resp.json()["name"] == "DEV env"
        assert resp.json()["code"] == "DEV"
        assert resp.json()["auth_type"] == "bearer"


class TestSimulatedEndpoints:
    def _create(self, client, **extra):
        payload = {
            "method": "POST",
            "path": "/api/customers",
            "response_template": {"id": "{{request.query.id}}", "name": "{{request.body.name}}"},
            **extra,
        }
        resp = client.post("/sim-apis", json=payload)
        assert resp.status_code == 201
        return resp.json()

    def test_create_returns_proxy_url(self, client):
        created = self._create(client)
        assert created["full_url"] == "/sim-proxy/api/customers"

    def test_proxy_renders_template_and_logs_call(self, client):
        created = self._create(client)

        resp = client.post("/sim-proxy/api/customers?id=7", json={"name": "Ana"})
        assert resp.status_code == 200
        assert resp.json() == {"id": "7", "name": "Ana"}

        logs = client.get(f"/sim-apis/{created['id']}/logs").json()
        assert len(logs) == 1
        assert logs[0]["request_path"] == "/api/customers"
        assert logs[0]["error_injected"] is False

    def test_proxy_unknown_path_is_404(self, client):
        resp = client.get("/sim-proxy/nothing/here")
        assert resp.status_code == 404
        assert resp.json() == {
            "error": "Endpoint not found",
            "message": "No simulated endpoint configured for GET /nothing/here",
        }

    def test_disabled_endpoint_is_not_routed(self, client):
        created = self._create(client)
        client.put(f"/sim-apis/{created['id']}", json={"enabled": False})
        assert client.post("/sim-proxy/api/customers", json={}).status_code == 404

    def test_injected_errors_are_flagged(self, client):
        created = self._create(client, error_rate=100)
        resp = client.post("/sim-proxy/api/customers", json={"name": "Ana"})
        assert resp.status_code == 500
        assert resp.json() == SIMULATED_ERROR_BODY
        logs = client.get(f"/sim-apis/{created['id']}/logs").json()
        assert logs[0]["error_injected"] is True

    def test_non_json_body_is_treated_as_empty(self, client):
        self._create(client)
        resp = client.post("/sim-proxy/api/customers", content=b"not json",
                           headers={"content-type": "text/plain"})
        assert resp.json() == {"id": "", "name": ""}

    def test_invalid_config_is_rejected(self, client):
        resp = client.post("/sim-apis", json={"method": "TRACE", "path": "/x"})
        assert resp.status_code == 422
        resp = client.post("/sim-apis", json={"method": "GET", "path": "/x", "error_rate": 150})
        assert resp.status_code == 422

    def test_scripted_non_finite_value_serves_raw_template(self, client):
        client.post("/sim-apis", json={"method": "GET", "path": "/nan", "response_template": {"a": 1},
                                        "script": "set body.x = NaN"})
        resp = client.get("/sim-proxy/nan")
        assert resp.status_code == 200
        assert resp.json() == {"a": 1}

    def test_null_update_keeps_required_columns(self, client):
        created = self._create(client, status_code=201, script="status 202")
        resp = client.put(f"/sim-apis/{created['id']}", json={
            "status_code": None, "latency_ms": None, "error_rate": None, "response_template": None,
            "method": None, "path": None, "enabled": None, "script": None,
        })
        assert resp.status_code == 200
        endpoint = resp.json()
        assert endpoint["status_code"] == 201
        assert endpoint["method"] == "POST"
        assert endpoint["path"] == "/api/customers"
        assert endpoint["enabled"] is True
        assert endpoint["script"] is None

    @pytest.mark.parametrize("method", ["HEAD", "OPTIONS"])
    def test_head_and_options_endpoints_are_routed(self, client, method):
        resp = client.post("/sim-apis", json={"method": method, "path": "/health-check", "status_code": 202})
        assert resp.status_code == 201
        assert client.request(method, "/sim-proxy/health-check").status_code == 202

    def test_array_fields_render_comma_joined(self, client):
        client.post("/sim-apis", json={"method": "POST", "path": "/tags",
                                        "response_template": {"tags": "{{request.body.tags}}"}})
        resp = client.post("/sim-proxy/tags", json={"tags": ["a", "b", None]})
        assert resp.json() == {"tags": "a,b,"}

    def test_unknown_endpoint_crud_is_404(self, client):
        assert client.get("/sim-apis/missing").status_code == 404
        assert client.delete("/sim-apis/missing").status_code == 404


class TestDataGenerator:
    def test_run_and_clear(self, client):
        resp = client.post("/data-generator/run", json={
            "target_table": "transactions",
            "rows": 200,
            "seasonality": True,
            "distributions": {"amount": {"type": "uniform", "params": {"min": 20, "max": 40}}},
            "anomalies": {"enabled": True, "count": 5, "types": ["outlier", "null_value"]},
            "seed": 3,
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["generated_rows"] == 200
        assert len(body["preview_sample"]) == 10

        db.insert_transactions([{"id": "manual", "ts": "2026-01-01T00:00:00.000000+00:00",
                                 "metadata": {"source": "manual"}}])
        resp = client.post("/data-generator/clear",
                           json={"target_table": "transactions", "only_simulator_data": True})
        assert resp.json() == {"transactions_deleted": 200, "operational_events_deleted": 0}
        assert db.count_rows("transactions") == 1

    def test_unsupported_table_is_rejected(self, client):
        resp = client.post("/data-generator/run", json={"target_table": "customers", "rows": 10})
        assert resp.status_code == 422

    def test_bad_clear_dates_are_400(self, client):
        resp = client.post("/data-generator/clear", json={"target_table": "all", "from_date": "yesterday-ish"})
        assert resp.status_code == 400

    def test_sample_endpoint(self, client):
        resp = client.post("/data-generator/sample", json={
            "distribution": {"type": "uniform", "params": {"min": 1, "max": 2}}, "seed": 1,
        })
        assert 1 <= resp.json()["value"] < 2


class TestChatAndWebhooks:
    def test_message_without_orchestrator_is_not_enqueued(self, client):
        env = _create_env(client)
        session = client.post("/chat/sessions", json={"environment_id": env["id"]}).json()

        resp = client.post(f"/chat/sessions/{session['id']}/messages", json={"content": "hi"})
        body = resp.json()
        assert body["orchestrator_call_enqueued"] is False
        assert body["correlation_id"]

    def test_message_with_orchestrator_schedules_call(self, client, monkeypatch):
        from orchsim.routers import chat as chat_router

        sent = []

        async def fake_send(session, environment, message, correlation_id):
            sent.append((session["id"], message["content"], correlation_id))

        monkeypatch.setattr(chat_router, "send_to_orchestrator", fake_send)
        env = _create_env(client, code="ORC", orchestrator_base_url="http://orc.test")
        session = client.post("/chat/sessions", json={"environment_id": env["id"]}).json()

        body = client.post(f"/chat/sessions/{session['id']}/messages", json={"content": "ping"}).json()

        assert body["orchestrator_call_enqueued"] is True
        assert sent == [(session["id"], "ping", body["correlation_id"])]

    def test_webhook_delivers_outbound_message_and_traces_it(self, client):
        env = _create_env(client)
        session = client.post("/chat/sessions",
                              json={"environment_id": env["id"], "external_session_id": "ext-9"}).json()

        resp = client.post("/webhooks/orchestrator/messages", json={
            "session_id": "ext-9",
            "content": "Hello! How can I help?",
            "payload": {"buttons": [{"label": "Yes"}]},
            "correlation_id": "corr-77",
            "run_id": "run-1",
        })
        assert resp.json()["success"] is True

        detail = client.get(f"/chat/sessions/{session['id']}").json()
        assert [m["direction"] for m in detail["messages"]] == ["outbound"]
        assert detail["messages"][0]["orchestrator_run_id"] == "run-1"

        calls = client.get("/observability/orchestrator-calls", params={"correlation_id": "corr-77"}).json()
        assert len(calls) == 1
        assert calls[0]["direction"] == "inbound"

    def test_webhook_unknown_session(self, client):
        resp = client.post("/webhooks/orchestrator/messages", json={"session_id": "nope", "content": "x"})
        assert resp.status_code == 200
        assert resp.json()["success"] is False

    def test_closed_session_rejects_messages(self, client):
        env = _create_env(client)
        session = client.post("/chat/sessions", json={"environment_id": env["id"]}).json()
        assert client.post(f"/chat/sessions/{session['id']}/close").json()["status"] == "closed"
        resp = client.post(f"/chat/sessions/{session['id']}/messages", json={"content": "late"})
        assert resp.status_code == 409

    def test_session_for_unknown_environment_is_404(self, client):
        assert client.post("/chat/sessions", json={"environment_id": "missing"}).status_code == 404


class TestObservability:
    def test_metrics_summary(self, client):
        db.insert_orchestrator_call({"direction": "outbound", "latency_ms": 100, "error_flag": False})
        db.insert_orchestrator_call({"direction": "outbound", "latency_ms": 300, "error_flag": True})

        metrics = client.get("/observability/metrics").json()

        assert metrics["total_calls"] == 2
        assert metrics["error_rate"] == 50.0
        assert metrics["latency"] == {"avg": 200, "max": 300, "min": 100}
        assert metrics["simulated_calls"] == 0

    def test_health(self, client):
        assert client.get("/healthz").json() == {"ok": True}
