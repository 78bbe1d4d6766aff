"""Tests for the session registry and session snapshot stores."""

import asyncio
from typing import Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from circuitiq_core.core.diagnostics import RedisSessionStore, SessionRegistry, SessionStore
from circuitiq_core.models import SessionState, VehicleContext
from tests.conftest import StubGateway


class MemorySessionStore(SessionStore):
    """Snapshot store with version checks, and a slow load to widen races"""

    def __init__(self, load_delay: float = 0.0):
        self.snapshots: Dict[str, SessionState] = {}
        self.load_delay = load_delay
        self.loads = 0

    async def load(self, session_id: str) -> Optional[SessionState]:
        self.loads += 1
        await asyncio.sleep(self.load_delay)
        state = self.snapshots.get(session_id)
        return state.model_copy(deep=True) if state else None

    async def save(self, state: SessionState, expected_version: int) -> bool:
        stored = self.snapshots.get(state.session_id)
        if stored is not None and stored.version != expected_version:
            return False
        self.snapshots[state.session_id] = state.model_copy(deep=True)
        return True

    async def delete(self, session_id: str) -> None:
        self.snapshots.pop(session_id, None)


class FakePipeline:
    """Just enough of a redis transaction pipeline for snapshot saves"""

    def __init__(self, stored=None, execute_error: Optional[Exception] = None):
        self.stored = stored
        self.execute_error = execute_error
        self.watched = []
        self.writes = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def watch(self, key):
        self.watched.append(key)

    async def get(self, key):
        return self.stored

    def multi(self):
        pass

    def set(self, key, value, ex=None):
        self.writes.append((key, value, ex))

    async def execute(self):
        if self.execute_error:
            raise self.execute_error
        return [True]


def _redis_with(pipeline: FakePipeline) -> MagicMock:
    redis = MagicMock()
    redis.pipeline.return_value = pipeline
    return redis


class TestSessionRegistryInMemory:
    """Registry without a snapshot store."""

    @pytest.mark.asyncio
    async def test_creates_on_first_use(self, llm_settings, stub_gateway):
        registry = SessionRegistry(stub_gateway, llm_settings=llm_settings)
        vehicle = VehicleContext(make="Piper", model="PA-28", type="aircraft")

        session = await registry.get_or_create("s-1", vehicle)

        assert "s-1" in registry
        assert len(registry) == 1
        assert session.state.vehicle == vehicle
        assert session.state.chat_history == []

    @pytest.mark.asyncio
    async def test_vehicle_only_applies_on_creation(self, llm_settings, stub_gateway):
        registry = SessionRegistry(stub_gateway, llm_settings=llm_settings)
        first = await registry.get_or_create("s-1", VehicleContext(make="Ford", type="automotive"))
        second = await registry.get_or_create("s-1", VehicleContext(make="Yamaha", type="marine"))

        assert first is second
        assert second.state.vehicle.make == "Ford"

    @pytest.mark.asyncio
    async def test_concurrent_first_use_yields_one_session(self, llm_settings, stub_gateway):
        registry = SessionRegistry(stub_gateway, llm_settings=llm_settings)

        sessions = await asyncio.gather(*[registry.get_or_create("s-1") for _ in range(10)])

        assert all(s is sessions[0] for s in sessions)
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_persist_without_store_is_noop(self, llm_settings, stub_gateway):
        registry = SessionRegistry(stub_gateway, llm_settings=llm_settings)
        session = await registry.get_or_create("s-1")
        assert await registry.persist(session) is True

    @pytest.mark.asyncio
    async def test_remove_and_clear(self, llm_settings, stub_gateway):
        registry = SessionRegistry(stub_gateway, llm_settings=llm_settings)
        await registry.get_or_create("s-1")
        await registry.get_or_create("s-2")

        assert await registry.remove("s-1") is True
        assert await registry.remove("s-1") is False
        registry.clear()
        assert len(registry) == 0


class TestSessionRegistryWithStore:
    """Registry backed by a snapshot store."""

    @pytest.mark.asyncio
    async def test_concurrent_first_use_loads_once(self, llm_settings, stub_gateway):
        store = MemorySessionStore(load_delay=0.01)
        registry = SessionRegistry(stub_gateway, store=store, llm_settings=llm_settings)

        sessions = await asyncio.gather(*[registry.get_or_create("s-1") for _ in range(5)])

        assert all(s is sessions[0] for s in sessions)
        assert store.loads == 1

    @pytest.mark.asyncio
    async def test_restores_snapshot(self, llm_settings, stub_gateway):
        store = MemorySessionStore()
        store.snapshots["s-1"] = SessionState(session_id="s-1", symptom="No power", version=4)
        registry = SessionRegistry(stub_gateway, store=store, llm_settings=llm_settings)

        session = await registry.get_or_create("s-1")

        assert session.state.symptom == "No power"
        assert session.state.version == 4

    @pytest.mark.asyncio
    async def test_persist_after_action(self, llm_settings):
        store = MemorySessionStore()
        registry = SessionRegistry(StubGateway("Check fuse F3."), store=store, llm_settings=llm_settings)
        session = await registry.get_or_create("s-1")

        await session.chat("Lights dead")
        assert await registry.persist(session) is True
        await session.chat("Fuse is fine")
        assert await registry.persist(session) is True

        assert store.snapshots["s-1"].version == 2
        assert len(store.snapshots["s-1"].chat_history) == 4

    @pytest.mark.asyncio
    async def test_persist_loses_race(self, llm_settings):
        store = MemorySessionStore()
        registry = SessionRegistry(StubGateway("ok"), store=store, llm_settings=llm_settings)
        session = await registry.get_or_create("s-1")
        store.snapshots["s-1"] = SessionState(session_id="s-1", version=7)

        await session.chat("hello")

        assert await registry.persist(session) is False
        assert store.snapshots["s-1"].version == 7

    @pytest.mark.asyncio
    async def test_store_outage_starts_fresh(self, llm_settings, stub_gateway):
        store = MagicMock(spec=SessionStore)
        store.load = AsyncMock(side_effect=RedisConnectionError("down"))
        store.save = AsyncMock(side_effect=RedisConnectionError("down"))
        registry = SessionRegistry(stub_gateway, store=store, llm_settings=llm_settings)

        session = await registry.get_or_create("s-1")

        assert session.state.session_id == "s-1"
        assert await registry.persist(session) is False

    @pytest.mark.asyncio
    async def test_remove_deletes_snapshot(self, llm_settings, stub_gateway):
        store = MemorySessionStore()
        registry = SessionRegistry(stub_gateway, store=store, llm_settings=llm_settings)
        session = await registry.get_or_create("s-1")
        await registry.persist(session)

        await registry.remove("s-1")

        assert "s-1" not in store.snapshots

    @pytest.mark.asyncio
    async def test_clear_drops_pending_loads(self, llm_settings, stub_gateway):
        store = MemorySessionStore(load_delay=0.05)
        registry = SessionRegistry(stub_gateway, store=store, llm_settings=llm_settings)
        first = asyncio.ensure_future(registry.get_or_create("s-1"))
        await asyncio.sleep(0)
        assert "s-1" in registry._loading

        registry.clear()

        assert registry._loading == {}
        second = asyncio.ensure_future(registry.get_or_create("s-1"))
        await asyncio.gather(first, second)
        assert store.loads == 2


class TestRedisSessionStore:
    """Snapshot layout and optimistic writes in Redis."""

    @pytest.mark.asyncio
    async def test_load_missing(self):
        redis = MagicMock()
        redis.get = AsyncMock(return_value=None)
        store = RedisSessionStore(redis, ttl_seconds=60)

        assert await store.load("s-1") is None
        redis.get.assert_awaited_once_with("circuitiq:session:s-1")

    @pytest.mark.asyncio
    async def test_load_snapshot(self):
        snapshot = SessionState(session_id="s-1", symptom="Dim lights", version=3)
        redis = MagicMock()
        redis.get = AsyncMock(return_value=snapshot.model_dump_json(by_alias=True).encode())

        state = await RedisSessionStore(redis, ttl_seconds=60).load("s-1")

        assert state.symptom == "Dim lights"
        assert state.version == 3

    @pytest.mark.asyncio
    async def test_corrupt_snapshot_is_discarded(self):
        redis = MagicMock()
        redis.get = AsyncMock(return_value=b'{"not": "a session"}')
        assert await RedisSessionStore(redis, ttl_seconds=60).load("s-1") is None

    @pytest.mark.asyncio
    async def test_save_new_snapshot(self):
        pipeline = FakePipeline()
        store = RedisSessionStore(_redis_with(pipeline), ttl_seconds=600)

        assert await store.save(SessionState(session_id="s-1", version=1), expected_version=0) is True

        key, payload, ttl = pipeline.writes[0]
        assert key == "circuitiq:session:s-1"
        assert ttl == 600
        assert '"sessionId":"s-1"' in payload
        assert pipeline.watched == ["circuitiq:session:s-1"]

    @pytest.mark.asyncio
    async def test_save_rejects_stale_version(self):
        stored = SessionState(session_id="s-1", version=5).model_dump_json()
        pipeline = FakePipeline(stored=stored)
        store = RedisSessionStore(_redis_with(pipeline), ttl_seconds=600)

        assert await store.save(SessionState(session_id="s-1", version=3), expected_version=2) is False
        assert pipeline.writes == []

    @pytest.mark.asyncio
    async def test_save_loses_watch(self):
        pipeline = FakePipeline(execute_error=WatchError("changed"))
        store = RedisSessionStore(_redis_with(pipeline), ttl_seconds=600)

        assert await store.save(SessionState(session_id="s-1", version=1), expected_version=0) is False

    @pytest.mark.asyncio
    async def test_delete(self):
        redis = MagicMock()
        redis.delete = AsyncMock()
        await RedisSessionStore(redis, ttl_seconds=60).delete("s-1")
        redis.delete.assert_awaited_once_with("circuitiq:session:s-1")
