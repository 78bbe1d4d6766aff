"""Quota ledger: per-user, per-billing-period usage against plan limits.

Metering is split in two:

- ``check_limit`` runs before the metered action and decides whether it may
  happen at all.
- ``record`` runs after the action succeeded and never raises: a failed
  write is logged and the user keeps the result they already got.

Nothing ties a check to the record that follows it, so two concurrent
requests can both pass a check at ``limit - 1`` and both be recorded.
"""

import asyncio
import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Optional, Set

from circuitiq_core.config import get_settings
from circuitiq_core.core.quota.plans import PlanDirectory
from circuitiq_core.core.quota.stores import UsageStore
from circuitiq_core.exceptions import QuotaExceeded
from circuitiq_core.models import (
    QuotaStatus,
    UsageAction,
    UsageEvent,
    UsageSummary,
    billing_period,
)

logger = logging.getLogger(__name__)


def usage_percentage(current: int, limit: Optional[int]) -> int:
    """Share of the limit used, rounded half up; unlimited is 0%"""
    if limit is None:
        return 0
    if limit == 0:
        return 100
    return int(100 * current / limit + 0.5)


class QuotaLedger:
    """Checks and records metered actions"""

    def __init__(
        self,
        store: UsageStore,
        plans: PlanDirectory,
        timezone: Optional[str] = None,
    ):
        self.store = store
        self.plans = plans
        self.timezone = timezone or get_settings().billing_timezone
        self._pending: Set[asyncio.Task] = set()

    def current_period(self, now: Optional[datetime] = None) -> str:
        return billing_period(now, self.timezone)

    async def check_limit(self, user_id: str, action: UsageAction) -> QuotaStatus:
        """May ``user_id`` perform ``action`` now?"""
        limits = await self.plans.get_plan_limits(user_id)
        limit = limits.limit_for(action)
        current = await self.store.count(user_id, action, self.current_period())

        return QuotaStatus(
            allowed=limit is None or current < limit,
            current=current,
            limit=limit,
            percentage=usage_percentage(current, limit),
        )

    async def ensure_allowed(self, user_id: str, action: UsageAction) -> QuotaStatus:
        """``check_limit`` that raises instead of answering no.

        Raises:
            QuotaExceeded: The plan limit for ``action`` is reached
        """
        status = await self.check_limit(user_id, action)
        if not status.allowed:
            logger.info(f"Quota exceeded for {user_id}: {action.value} {status.current}/{status.limit}")
            raise QuotaExceeded(
                action=action.value,
                current=status.current,
                limit=status.limit,
                percentage=status.percentage,
            )
        return status

    async def record(
        self,
        user_id: str,
        action: UsageAction,
        metadata: Optional[Dict[str, Any]] = None,
        resource_id: Optional[str] = None,
    ) -> bool:
        """Append one usage event; returns False (and logs) on failure"""
        try:
            event = UsageEvent(
                user_id=user_id,
                action=action,
                billing_period=self.current_period(),
                resource_id=resource_id,
                metadata=metadata or {},
            )
            await self.store.append(event)
        except Exception as e:
            logger.error(f"Failed to record {action.value} for {user_id}: {type(e).__name__}: {e}")
            return False

        logger.debug(f"Recorded {action.value} for {user_id} in {event.billing_period}")
        return True

    def record_in_background(
        self,
        user_id: str,
        action: UsageAction,
        metadata: Optional[Dict[str, Any]] = None,
        resource_id: Optional[str] = None,
    ) -> asyncio.Task:
        """Schedule ``record`` without waiting for it"""
        task = asyncio.create_task(
            self.record(user_id, action, metadata=metadata, resource_id=resource_id)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def flush(self):
        """Wait for every background recording scheduled so far"""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def get_usage(self, user_id: str) -> UsageSummary:
        """Current-period counts and limits for every action category"""
        period = self.current_period()
        limits = await self.plans.get_plan_limits(user_id)
        current = {}
        for action in UsageAction:
            current[action] = await self.store.count(user_id, action, period)

        return UsageSummary(
            user_id=user_id,
            plan=limits.plan,
            billing_period=period,
            current=current,
            limits={action: limits.limit_for(action) for action in UsageAction},
        )

    async def get_usage_analytics(self, user_id: str, period: Optional[str] = None) -> Dict[str, Any]:
        """Event totals for a billing period, by category and by day"""
        period = period or self.current_period()
        events = await self.store.list_events(user_id, period)

        by_action = Counter(event.action.value for event in events)
        by_day: Dict[str, Counter] = {}
        for event in events:
            day = event.created_at.date().isoformat()
            by_day.setdefault(day, Counter())[event.action.value] += 1

        return {
            "billingPeriod": period,
            "total": len(events),
            "byAction": dict(by_action),
            "byDay": {day: dict(counts) for day, counts in sorted(by_day.items())},
        }
