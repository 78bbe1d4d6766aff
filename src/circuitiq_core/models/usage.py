"""Usage and plan-limit models.

Usage is counted per (user, action category, billing period). The billing
period is a calendar month in the configured timezone, written as
``YYYY-MM``; it is part of every ledger key so counts roll over on their own
when a new month's key is first written.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, model_validator


class UsageAction(str, Enum):
    """Metered action categories"""

    DIAGRAM_UPLOAD = "DIAGRAM_UPLOAD"
    AI_ANALYSIS = "AI_ANALYSIS"
    PROCEDURE_VIEW = "PROCEDURE_VIEW"
    EXPORT_PDF = "EXPORT_PDF"
    EXPORT_DXF = "EXPORT_DXF"
    API_CALL = "API_CALL"


class UsageEvent(BaseModel):
    """One recorded metered action (append-only)"""

    user_id: str
    action: UsageAction
    billing_period: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    resource_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PlanLimits(BaseModel):
    """Monthly limits of one subscription plan; None means unlimited"""

    plan: str
    limits: Dict[UsageAction, Optional[int]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def non_negative(self):
        for action, limit in self.limits.items():
            if limit is not None and limit < 0:
                raise ValueError(f"Limit for {action.value} must be >= 0 or None")
        return self

    def limit_for(self, action: UsageAction) -> Optional[int]:
        """Limit for an action; categories the plan doesn't mention are unlimited"""
        return self.limits.get(action)


class QuotaStatus(BaseModel):
    """Answer to "may this user perform this action now?" """

    allowed: bool
    current: int = Field(..., ge=0)
    limit: Optional[int] = None
    percentage: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class UsageSummary(BaseModel):
    """Current-period counts and limits for every action category"""

    user_id: str
    plan: str
    billing_period: str
    current: Dict[UsageAction, int] = Field(default_factory=dict)
    limits: Dict[UsageAction, Optional[int]] = Field(default_factory=dict)


def billing_period(now: Optional[datetime] = None, tz: str = "UTC") -> str:
    """Billing period key (``YYYY-MM``) for a moment in the given timezone.

    Args:
        now: Moment to classify (default: current time). Naive values are
            treated as UTC.
        tz: IANA timezone name the calendar month is measured in

    Returns:
        The period key, e.g. ``"2026-10"``
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(ZoneInfo(tz))
    return f"{local.year:04d}-{local.month:02d}"
