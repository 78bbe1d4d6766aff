"""Tests for the FastAPI router and request identity."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from circuitiq_core.api import DiagnosticDispatcher, WireTraceDispatcher, create_router
from circuitiq_core.auth.request_context import _parse_roles
from circuitiq_core.core.diagnostics import SessionRegistry
from circuitiq_core.core.quota import InMemoryUsageStore, QuotaLedger, StaticPlanDirectory
from circuitiq_core.core.wiring import InMemoryDiagramDirectory, WireTracer
from circuitiq_core.exceptions import ConfigurationFailure, InferenceFailure
from circuitiq_core.models import PlanLimits, UsageAction
from tests.conftest import StubGateway

HEADERS = {"X-User-ID": "u1"}


def _app(gateway, llm_settings, with_ledger=True):
    ledger = None
    if with_ledger:
        plans = StaticPlanDirectory()
        plans.add_plan(PlanLimits(plan="TINY", limits={UsageAction.AI_ANALYSIS: 1}))
        plans.assign("u1", "TINY")
        ledger = QuotaLedger(InMemoryUsageStore(), plans, timezone="UTC")
    diagrams = InMemoryDiagramDirectory()
    diagrams.add("d-1", "u1", "https://files/d-1.png")

    app = FastAPI()
    app.include_router(
        create_router(
            DiagnosticDispatcher(SessionRegistry(gateway, llm_settings=llm_settings), ledger),
            WireTraceDispatcher(WireTracer(gateway, llm_settings), diagrams, ledger),
        )
    )
    return app


class TestRouter:
    """Status codes and bodies."""

    def test_missing_user_header(self, llm_settings, stub_gateway):
        client = TestClient(_app(stub_gateway, llm_settings))
        response = client.post("/api/v1/teammate", json={"action": "chat", "sessionId": "s", "message": "hi"})
        assert response.status_code == 401

    def test_chat_ok(self, llm_settings, stub_gateway):
        client = TestClient(_app(stub_gateway, llm_settings))
        response = client.post(
            "/api/v1/teammate", json={"action": "chat", "sessionId": "s", "message": "hi"}, headers=HEADERS
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Check the ground strap at G101."

    def test_invalid_action_is_400(self, llm_settings, stub_gateway):
        client = TestClient(_app(stub_gateway, llm_settings))
        response = client.post("/api/v1/teammate", json={"action": "dance"}, headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["errorCode"] == "INVALID_ACTION"

    def test_unknown_diagram_is_404(self, llm_settings, stub_gateway):
        client = TestClient(_app(stub_gateway, llm_settings))
        response = client.post(
            "/api/v1/wire-trace", json={"action": "extract_components", "diagramId": "nope"}, headers=HEADERS
        )
        assert response.status_code == 404

    def test_quota_is_429_and_usage_reflects_it(self, llm_settings, stub_gateway):
        with TestClient(_app(stub_gateway, llm_settings)) as client:
            body = {"action": "chat", "sessionId": "s", "message": "hi"}
            assert client.post("/api/v1/teammate", json=body, headers=HEADERS).status_code == 200

            usage = client.get("/api/v1/usage", headers=HEADERS).json()
            assert usage["plan"] == "TINY"
            assert usage["current"]["AI_ANALYSIS"] == 1
            assert usage["limits"]["AI_ANALYSIS"] == 1
            assert usage["limits"]["EXPORT_PDF"] is None

            response = client.post("/api/v1/teammate", json=body, headers=HEADERS)
            assert response.status_code == 429
            assert response.json()["percentage"] == 100

    @pytest.mark.parametrize(
        "error, status",
        [
            (InferenceFailure("timed out", error_code="INFERENCE_TIMEOUT"), 503),
            (ConfigurationFailure("no key"), 500),
        ],
    )
    def test_failures_map_to_status(self, llm_settings, error, status):
        client = TestClient(_app(StubGateway(error), llm_settings, with_ledger=False))
        response = client.post(
            "/api/v1/teammate", json={"action": "chat", "sessionId": "s", "message": "hi"}, headers=HEADERS
        )
        assert response.status_code == status
        assert response.json()["detail"]["errorCode"] == error.error_code

    def test_usage_without_ledger(self, llm_settings, stub_gateway):
        client = TestClient(_app(stub_gateway, llm_settings, with_ledger=False))
        assert client.get("/api/v1/usage", headers=HEADERS).status_code == 404


class TestRoleHeader:
    """X-User-Roles parsing."""

    def test_json_list(self):
        assert _parse_roles('["admin", "tech"]') == ["admin", "tech"]

    def test_comma_separated(self):
        assert _parse_roles("admin, tech") == ["admin", "tech"]

    def test_not_a_list(self):
        assert _parse_roles('{"role": "admin"}') == []

    def test_missing(self):
        assert _parse_roles(None) == []
