"""Tests for wiring the core components from settings."""

import pytest

from circuitiq_core.config import Settings
from circuitiq_core.core.quota import InMemoryUsageStore, StaticPlanDirectory
from circuitiq_core.core.wiring import InMemoryDiagramDirectory
from circuitiq_core.service import build_services
from tests.conftest import StubGateway


class TestBuildServices:
    """In-process defaults."""

    @pytest.mark.asyncio
    async def test_memory_defaults(self):
        gateway = StubGateway("ok")
        services = await build_services(Settings(default_plan="PROFESSIONAL"), gateway=gateway)

        assert isinstance(services.ledger.store, InMemoryUsageStore)
        assert isinstance(services.ledger.plans, StaticPlanDirectory)
        assert isinstance(services.diagrams, InMemoryDiagramDirectory)
        assert services.sessions.store is None
        assert services.diagnostic_dispatcher.ledger is services.ledger
        assert (await services.ledger.plans.get_plan_limits("u1")).plan == "PROFESSIONAL"

        paths = {route.path for route in services.router().routes}
        assert paths == {"/api/v1/teammate", "/api/v1/wire-trace", "/api/v1/usage"}

    @pytest.mark.asyncio
    async def test_shutdown_flushes_recordings(self):
        services = await build_services(Settings(), gateway=StubGateway("ok"))

        await services.diagnostic_dispatcher.dispatch(
            "u1", {"action": "chat", "sessionId": "s-1", "message": "hello"}
        )
        await services.shutdown()

        assert services.ledger.pending == 0
        summary = await services.ledger.get_usage("u1")
        assert summary.current[services.diagnostic_dispatcher.metered_action] == 1
