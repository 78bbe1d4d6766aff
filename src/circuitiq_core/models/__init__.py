"""
Data models for the CircuitIQ core.

Pydantic models shared by the diagnostic session engine, the quota ledger,
the wire-tracing engine and the dispatch surfaces.
"""

from circuitiq_core.models.session import (
    ChatMessage,
    ChatRole,
    CheckProcedure,
    DiagnosticInsight,
    Likelihood,
    ProbableCause,
    SessionState,
    SuggestedTest,
    VehicleClass,
    VehicleContext,
)
from circuitiq_core.models.usage import (
    PlanLimits,
    QuotaStatus,
    UsageAction,
    UsageEvent,
    UsageSummary,
    billing_period,
)
from circuitiq_core.models.wiring import (
    Component,
    ComponentAnalysis,
    PathPoint,
    WirePath,
)

__all__ = [
    # Session
    "ChatMessage", "ChatRole", "CheckProcedure", "DiagnosticInsight", "Likelihood",
    "ProbableCause", "SessionState", "SuggestedTest", "VehicleClass", "VehicleContext",
    # Usage
    "PlanLimits", "QuotaStatus", "UsageAction", "UsageEvent", "UsageSummary",
    "billing_period",
    # Wiring
    "Component", "ComponentAnalysis", "PathPoint", "WirePath",
]
