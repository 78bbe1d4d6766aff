"""Diagnostic session engine and session registry."""

from circuitiq_core.core.diagnostics.session import DiagnosticSession, SessionReply, parse_assessment
from circuitiq_core.core.diagnostics.registry import (
    RedisSessionStore,
    SessionRegistry,
    SessionStore,
)

__all__ = [
    "DiagnosticSession",
    "SessionReply",
    "parse_assessment",
    "RedisSessionStore",
    "SessionRegistry",
    "SessionStore",
]
