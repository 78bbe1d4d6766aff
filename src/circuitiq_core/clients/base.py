"""Base service client for internal service-to-service calls."""

import json
import logging
from typing import List, Optional

import httpx

logger = logging.getLogger(__name__)


class BaseServiceClient:
    """Base class for internal HTTP clients.

    Services call each other directly; the authenticated user travels in
    X-User-* headers set by the API gateway, and is forwarded as-is.

    Usage:
        class AccountServiceClient(BaseServiceClient):
            async def get_user(self, user_id: str) -> dict:
                async with self._get_client() as client:
                    response = await client.get(
                        f"{self.base_url}/api/v1/users/{user_id}",
                        headers=self._headers(user_id=user_id),
                    )
                    response.raise_for_status()
                    return response.json()
    """

    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            base_url: Service base URL (e.g. http://circuitiq-accounts:8000)
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

        logger.info(f"Initialized {self.__class__.__name__} with base_url={self.base_url}")

    def _headers(
        self,
        user_id: Optional[str] = None,
        user_roles: Optional[List[str]] = None,
        correlation_id: Optional[str] = None,
    ) -> dict:
        headers = {"Content-Type": "application/json"}
        if user_id:
            headers["X-User-ID"] = user_id
        if user_roles:
            headers["X-User-Roles"] = json.dumps(user_roles)
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        """Fresh AsyncClient, meant for ``async with``"""
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
