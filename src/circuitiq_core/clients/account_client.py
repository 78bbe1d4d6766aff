"""HTTP client for the account service (plans and diagram records)."""

import logging
from typing import Dict, Optional

import httpx
from pydantic import ValidationError

from circuitiq_core.clients.base import BaseServiceClient
from circuitiq_core.core.quota.plans import BUILTIN_PLANS, PlanDirectory
from circuitiq_core.core.wiring.diagrams import DiagramDirectory
from circuitiq_core.models import PlanLimits
from circuitiq_core.utils import create_custom_retry

logger = logging.getLogger(__name__)

_startup_retry = create_custom_retry(max_attempts=5, min_wait=1, max_wait=8, retry_on=(httpx.TransportError,))


class AccountServiceClient(BaseServiceClient, PlanDirectory, DiagramDirectory):
    """Plan and diagram lookups against the account service REST API.

    Endpoints:
        GET /api/v1/users/{user_id}/plan  -> {"plan": "FREE", "limits": {...}?}
        GET /api/v1/diagrams/{diagram_id} -> {"id", "userId", "fileUrl", "analysisImageUrl"?}
        GET /health

    Usage:
        client = AccountServiceClient(base_url="http://circuitiq-accounts:8000")
        limits = await client.get_plan_limits("user-123")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        default_plan: str = "FREE",
        plans: Optional[Dict[str, PlanLimits]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url=base_url, timeout=timeout, transport=transport)
        self.plans = dict(plans if plans is not None else BUILTIN_PLANS)
        self.default_plan = default_plan

    async def get_plan_limits(self, user_id: str) -> PlanLimits:
        """Limits of the user's plan.

        A response carrying explicit ``limits`` wins; otherwise the plan
        name is looked up in the built-in table. Unknown users are on the
        default plan.

        Raises:
            httpx.HTTPStatusError: Account service error other than 404
        """
        async with self._get_client() as client:
            response = await client.get(
                f"{self.base_url}/api/v1/users/{user_id}/plan",
                headers=self._headers(user_id=user_id),
            )
        if response.status_code == 404:
            logger.info(f"User {user_id} unknown to account service, applying {self.default_plan}")
            return self.plans[self.default_plan]
        response.raise_for_status()

        data = response.json()
        name = str(data.get("plan") or self.default_plan).upper()
        if data.get("limits") is not None:
            try:
                return PlanLimits(plan=name, limits=data["limits"])
            except ValidationError as e:
                logger.warning(f"Ignoring malformed limits for plan {name}: {e.error_count()} errors")

        limits = self.plans.get(name)
        if limits is None:
            logger.warning(f"User {user_id} is on unknown plan '{name}', applying {self.default_plan}")
            limits = self.plans[self.default_plan]
        return limits

    async def get_image_ref(self, diagram_id: str, user_id: str) -> Optional[str]:
        """Analysis image (else file URL) of a diagram owned by ``user_id``"""
        async with self._get_client() as client:
            response = await client.get(
                f"{self.base_url}/api/v1/diagrams/{diagram_id}",
                headers=self._headers(user_id=user_id),
            )
        if response.status_code in (403, 404):
            return None
        response.raise_for_status()

        data = response.json()
        if data.get("userId") != user_id:
            logger.warning(f"Diagram {diagram_id} is not owned by {user_id}")
            return None
        return data.get("analysisImageUrl") or data.get("fileUrl")

    @_startup_retry
    async def verify_connection(self) -> None:
        """Ping ``/health``, retrying while the service comes up"""
        async with self._get_client() as client:
            response = await client.get(f"{self.base_url}/health")
        response.raise_for_status()
        logger.info(f"Account service reachable at {self.base_url}")
