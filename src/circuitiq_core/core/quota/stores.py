"""Usage record stores.

A store keeps two things per (user, billing period): a counter per action
category and the append-only list of usage events. Counters are what quota
checks read; events back the usage analytics.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List, Tuple

from redis.asyncio import Redis

from circuitiq_core.models import UsageAction, UsageEvent

logger = logging.getLogger(__name__)


class UsageStore(ABC):
    """Append-only usage ledger"""

    @abstractmethod
    async def append(self, event: UsageEvent) -> None:
        pass

    @abstractmethod
    async def count(self, user_id: str, action: UsageAction, period: str) -> int:
        pass

    @abstractmethod
    async def list_events(self, user_id: str, period: str) -> List[UsageEvent]:
        pass


class InMemoryUsageStore(UsageStore):
    """Process-local store for tests and single-node development"""

    def __init__(self):
        self._counts: Dict[Tuple[str, UsageAction, str], int] = defaultdict(int)
        self._events: Dict[Tuple[str, str], List[UsageEvent]] = defaultdict(list)

    async def append(self, event: UsageEvent) -> None:
        self._counts[(event.user_id, event.action, event.billing_period)] += 1
        self._events[(event.user_id, event.billing_period)].append(event)

    async def count(self, user_id: str, action: UsageAction, period: str) -> int:
        return self._counts.get((user_id, action, period), 0)

    async def list_events(self, user_id: str, period: str) -> List[UsageEvent]:
        return list(self._events.get((user_id, period), []))


class RedisUsageStore(UsageStore):
    """Redis-backed store.

    Keys:
        circuitiq:usage:{user_id}:{period}:{action}  -> INCR counter
        circuitiq:usage-events:{user_id}:{period}    -> RPUSH list of JSON events

    Both expire after ``ttl_seconds`` (about two billing periods) so old
    months clean themselves up.
    """

    KEY_PREFIX = "circuitiq:usage"
    EVENTS_PREFIX = "circuitiq:usage-events"
    DEFAULT_TTL_SECONDS = 62 * 24 * 3600

    def __init__(self, redis: Redis, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    def counter_key(self, user_id: str, action: UsageAction, period: str) -> str:
        return f"{self.KEY_PREFIX}:{user_id}:{period}:{action.value}"

    def events_key(self, user_id: str, period: str) -> str:
        return f"{self.EVENTS_PREFIX}:{user_id}:{period}"

    async def append(self, event: UsageEvent) -> None:
        counter = self.counter_key(event.user_id, event.action, event.billing_period)
        events = self.events_key(event.user_id, event.billing_period)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.incr(counter)
            pipe.expire(counter, self.ttl_seconds)
            pipe.rpush(events, event.model_dump_json())
            pipe.expire(events, self.ttl_seconds)
            await pipe.execute()

    async def count(self, user_id: str, action: UsageAction, period: str) -> int:
        raw = await self.redis.get(self.counter_key(user_id, action, period))
        return int(raw) if raw else 0

    async def list_events(self, user_id: str, period: str) -> List[UsageEvent]:
        raw_events = await self.redis.lrange(self.events_key(user_id, period), 0, -1)
        return [UsageEvent.model_validate_json(raw) for raw in raw_events]
