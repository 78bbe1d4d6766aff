"""Usage quotas: plan limits, usage stores and the quota ledger."""

from circuitiq_core.core.quota.plans import BUILTIN_PLANS, PlanDirectory, StaticPlanDirectory
from circuitiq_core.core.quota.stores import InMemoryUsageStore, RedisUsageStore, UsageStore
from circuitiq_core.core.quota.ledger import QuotaLedger, usage_percentage

__all__ = [
    "BUILTIN_PLANS",
    "PlanDirectory",
    "StaticPlanDirectory",
    "InMemoryUsageStore",
    "RedisUsageStore",
    "UsageStore",
    "QuotaLedger",
    "usage_percentage",
]
