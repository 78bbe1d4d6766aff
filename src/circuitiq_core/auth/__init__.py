"""Request identity for the HTTP surface.

The API gateway authenticates users; services trust the X-User-* headers it
sets.
"""

from circuitiq_core.auth.request_context import RequestContext, get_request_context

__all__ = [
    "RequestContext",
    "get_request_context",
]
