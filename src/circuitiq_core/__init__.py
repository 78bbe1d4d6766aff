"""CircuitIQ Core Library

Diagnostic session engine, usage quotas, wire tracing and multimodal LLM
infrastructure for CircuitIQ services.
"""

__version__ = "0.1.0"

# Models and errors first (no dependencies)
from circuitiq_core.exceptions import (
    CircuitIQError,
    ConfigurationFailure,
    DiagramNotFound,
    InferenceFailure,
    InvalidActionError,
    InvalidArgumentError,
    QuotaExceeded,
)
from circuitiq_core.models import (
    Component,
    ComponentAnalysis,
    PlanLimits,
    QuotaStatus,
    SessionState,
    UsageAction,
    VehicleContext,
    WirePath,
)
from circuitiq_core.config import Settings, get_settings, reset_settings


# Lazy import for the engines and surfaces, which pull in aiohttp, redis and
# fastapi
_LAZY = {
    "InferenceGateway": "circuitiq_core.infrastructure.llm",
    "DiagnosticSession": "circuitiq_core.core.diagnostics",
    "SessionRegistry": "circuitiq_core.core.diagnostics",
    "QuotaLedger": "circuitiq_core.core.quota",
    "WireTracer": "circuitiq_core.core.wiring",
    "DiagnosticDispatcher": "circuitiq_core.api",
    "WireTraceDispatcher": "circuitiq_core.api",
    "create_router": "circuitiq_core.api",
    "build_services": "circuitiq_core.service",
}


def __getattr__(name):
    """Lazy import of engine classes."""
    module_name = _LAZY.get(name)
    if module_name is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    import importlib

    return getattr(importlib.import_module(module_name), name)


__all__ = [
    # Errors
    "CircuitIQError", "ConfigurationFailure", "DiagramNotFound", "InferenceFailure",
    "InvalidActionError", "InvalidArgumentError", "QuotaExceeded",
    # Models
    "Component", "ComponentAnalysis", "PlanLimits", "QuotaStatus", "SessionState",
    "UsageAction", "VehicleContext", "WirePath",
    # Settings
    "Settings", "get_settings", "reset_settings",
    # Engines (lazy loaded)
    *_LAZY.keys(),
]
