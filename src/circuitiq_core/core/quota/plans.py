"""Subscription plans and plan lookup."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from circuitiq_core.models import PlanLimits, UsageAction

logger = logging.getLogger(__name__)


def _plan(name: str, **limits: Optional[int]) -> PlanLimits:
    """Plan with every category unlimited except the ones given"""
    table = {action: None for action in UsageAction}
    table.update({UsageAction[key]: value for key, value in limits.items()})
    return PlanLimits(plan=name, limits=table)


BUILTIN_PLANS: Dict[str, PlanLimits] = {
    "FREE": _plan("FREE", DIAGRAM_UPLOAD=5, AI_ANALYSIS=3),
    "PROFESSIONAL": _plan("PROFESSIONAL", AI_ANALYSIS=100, EXPORT_DXF=50),
    "ENTERPRISE": _plan("ENTERPRISE", API_CALL=10000),
}


class PlanDirectory(ABC):
    """Resolves the plan a user is subscribed to"""

    @abstractmethod
    async def get_plan_limits(self, user_id: str) -> PlanLimits:
        pass


class StaticPlanDirectory(PlanDirectory):
    """In-process user -> plan assignment with a default plan.

    Usage:
        plans = StaticPlanDirectory({"user-1": "PROFESSIONAL"})
        limits = await plans.get_plan_limits("user-1")
    """

    def __init__(
        self,
        user_plans: Optional[Dict[str, str]] = None,
        default_plan: str = "FREE",
        plans: Optional[Dict[str, PlanLimits]] = None,
    ):
        self.plans = dict(plans if plans is not None else BUILTIN_PLANS)
        if default_plan not in self.plans:
            raise ValueError(f"Default plan '{default_plan}' is not defined (known: {sorted(self.plans)})")
        self.default_plan = default_plan
        self.user_plans = dict(user_plans or {})

    def assign(self, user_id: str, plan: str):
        if plan not in self.plans:
            raise ValueError(f"Unknown plan '{plan}'")
        self.user_plans[user_id] = plan

    def add_plan(self, limits: PlanLimits):
        self.plans[limits.plan] = limits

    async def get_plan_limits(self, user_id: str) -> PlanLimits:
        name = self.user_plans.get(user_id, self.default_plan)
        limits = self.plans.get(name)
        if limits is None:
            logger.warning(f"User {user_id} is on unknown plan '{name}', applying {self.default_plan}")
            limits = self.plans[self.default_plan]
        return limits
