"""Wiring of the core components from settings.

Picks the concrete collaborators the settings ask for:

- usage store: in-memory, or Redis when ``CIRCUITIQ_USAGE_BACKEND=redis``
- plan and diagram lookup: the account service when
  ``CIRCUITIQ_ACCOUNT_SERVICE_URL`` is set, otherwise static plans and an
  in-memory diagram directory
- session snapshots: Redis whenever a Redis client is available

Example:
    ```python
    services = await build_services()
    app = FastAPI()
    app.include_router(services.router())
    ```
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter

from circuitiq_core.api import DiagnosticDispatcher, WireTraceDispatcher, create_router
from circuitiq_core.clients import AccountServiceClient
from circuitiq_core.config import Settings, get_settings
from circuitiq_core.core.diagnostics import RedisSessionStore, SessionRegistry
from circuitiq_core.core.quota import (
    InMemoryUsageStore,
    PlanDirectory,
    QuotaLedger,
    RedisUsageStore,
    StaticPlanDirectory,
    UsageStore,
)
from circuitiq_core.core.wiring import DiagramDirectory, InMemoryDiagramDirectory, WireTracer
from circuitiq_core.infrastructure.llm import InferenceGateway
from circuitiq_core.infrastructure.redis_setup import get_redis_client

logger = logging.getLogger(__name__)


@dataclass
class CircuitIQServices:
    """Everything a web process needs, already connected"""

    settings: Settings
    gateway: InferenceGateway
    sessions: SessionRegistry
    ledger: QuotaLedger
    tracer: WireTracer
    diagrams: DiagramDirectory
    diagnostic_dispatcher: DiagnosticDispatcher
    wire_trace_dispatcher: WireTraceDispatcher

    def router(self, prefix: str = "/api/v1") -> APIRouter:
        return create_router(
            self.diagnostic_dispatcher,
            self.wire_trace_dispatcher,
            ledger=self.ledger,
            prefix=prefix,
        )

    async def shutdown(self):
        """Let pending usage recordings finish"""
        await self.ledger.flush()


async def build_services(
    settings: Optional[Settings] = None,
    gateway: Optional[InferenceGateway] = None,
) -> CircuitIQServices:
    """Assemble the core components described by ``settings``"""
    settings = settings or get_settings()
    gateway = gateway or InferenceGateway(settings=settings)

    redis = None
    usage_store: UsageStore
    if settings.usage_backend == "redis":
        redis = await get_redis_client()
        usage_store = RedisUsageStore(redis)
    else:
        if settings.usage_backend != "memory":
            logger.warning(f"Unknown usage backend '{settings.usage_backend}', using in-memory store")
        usage_store = InMemoryUsageStore()

    plans: PlanDirectory
    diagrams: DiagramDirectory
    if settings.account_service_url:
        account = AccountServiceClient(settings.account_service_url, default_plan=settings.default_plan)
        await account.verify_connection()
        plans, diagrams = account, account
    else:
        plans = StaticPlanDirectory(default_plan=settings.default_plan)
        diagrams = InMemoryDiagramDirectory()

    session_store = RedisSessionStore(redis, ttl_seconds=settings.session_ttl_seconds) if redis else None
    sessions = SessionRegistry(gateway, store=session_store, llm_settings=settings.llm)
    ledger = QuotaLedger(usage_store, plans, timezone=settings.billing_timezone)
    tracer = WireTracer(gateway, llm_settings=settings.llm)

    logger.info(
        f"CircuitIQ services ready: usage={type(usage_store).__name__}, "
        f"plans={type(plans).__name__}, sessions={'redis' if session_store else 'memory'}"
    )

    return CircuitIQServices(
        settings=settings,
        gateway=gateway,
        sessions=sessions,
        ledger=ledger,
        tracer=tracer,
        diagrams=diagrams,
        diagnostic_dispatcher=DiagnosticDispatcher(sessions, ledger),
        wire_trace_dispatcher=WireTraceDispatcher(tracer, diagrams, ledger),
    )
