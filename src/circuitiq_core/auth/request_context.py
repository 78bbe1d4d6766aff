"""Caller identity from API gateway headers.

Authentication happens upstream: the gateway validates the session and sets
X-User-* headers (after stripping any the client sent). The library only
reads them.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """Authenticated caller of one request"""

    user_id: str
    user_roles: List[str] = field(default_factory=list)
    correlation_id: Optional[str] = None


def _parse_roles(header: Optional[str]) -> List[str]:
    if not header:
        return []
    try:
        roles = json.loads(header)
    except json.JSONDecodeError:
        # Also accept a plain comma-separated list
        return [role.strip() for role in header.split(",") if role.strip()]
    if isinstance(roles, list):
        return [str(role) for role in roles]
    logger.warning(f"Ignoring X-User-Roles header that is not a list: {header}")
    return []


def get_request_context(request: Request) -> RequestContext:
    """FastAPI dependency resolving the caller.

    Raises:
        HTTPException: 401 when X-User-ID is missing
    """
    user_id = (request.headers.get("X-User-ID") or "").strip()
    if not user_id:
        logger.warning(f"Rejected {request.method} {request.url.path}: missing X-User-ID header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header required (set by the API gateway)",
        )

    return RequestContext(
        user_id=user_id,
        user_roles=_parse_roles(request.headers.get("X-User-Roles")),
        correlation_id=request.headers.get("X-Correlation-ID"),
    )
