"""Dispatch surfaces and their FastAPI router."""

from circuitiq_core.api.dispatch import DiagnosticDispatcher, WireTraceDispatcher
from circuitiq_core.api.routes import STATUS_BY_ERROR_CODE, create_router

__all__ = [
    "DiagnosticDispatcher",
    "WireTraceDispatcher",
    "STATUS_BY_ERROR_CODE",
    "create_router",
]
