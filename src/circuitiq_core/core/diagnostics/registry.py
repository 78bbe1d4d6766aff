"""Session registry: session id -> live ``DiagnosticSession``.

Sessions live in process memory for the lifetime of the registry. Creation
happens on first reference to an unknown id and is atomic on the event loop:
two concurrent first requests for the same id get the same session object.

There is no eviction: a live session stays until ``remove`` or ``clear``
drops it, so memory grows with the number of distinct ids seen. Only the
Redis snapshots expire, after ``session_ttl_seconds``.

An optional ``SessionStore`` keeps snapshots so sessions survive restarts.
Snapshots are written with optimistic concurrency on ``SessionState.version``;
a writer that lost a race logs and keeps its in-memory state.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from circuitiq_core.config import LLMSettings, get_settings
from circuitiq_core.core.diagnostics.session import DiagnosticSession
from circuitiq_core.infrastructure.llm import InferenceGateway
from circuitiq_core.models import SessionState, VehicleContext

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Durable snapshot storage for session state"""

    @abstractmethod
    async def load(self, session_id: str) -> Optional[SessionState]:
        pass

    @abstractmethod
    async def save(self, state: SessionState, expected_version: int) -> bool:
        """Persist ``state`` if the stored snapshot is still at ``expected_version``.

        Returns:
            False when another writer got there first
        """
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        pass


class RedisSessionStore(SessionStore):
    """Session snapshots as JSON strings under ``circuitiq:session:{id}``"""

    KEY_PREFIX = "circuitiq:session"

    def __init__(self, redis: Redis, ttl_seconds: Optional[int] = None):
        self.redis = redis
        self.ttl_seconds = ttl_seconds or get_settings().session_ttl_seconds

    def _key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}:{session_id}"

    @staticmethod
    def _decode(raw) -> Optional[SessionState]:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return SessionState.model_validate_json(raw)

    async def load(self, session_id: str) -> Optional[SessionState]:
        try:
            return self._decode(await self.redis.get(self._key(session_id)))
        except ValidationError as e:
            logger.warning(f"Discarding corrupt snapshot for session {session_id}: {e.error_count()} errors")
            return None

    async def save(self, state: SessionState, expected_version: int) -> bool:
        key = self._key(state.session_id)
        payload = state.model_dump_json(by_alias=True)
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                stored = self._decode(await pipe.get(key))
                stored_version = stored.version if stored is not None else 0
                if stored is not None and stored_version != expected_version:
                    logger.warning(
                        f"Session {state.session_id} snapshot moved to v{stored_version} "
                        f"(expected v{expected_version}), not overwriting"
                    )
                    return False
                pipe.multi()
                pipe.set(key, payload, ex=self.ttl_seconds)
                await pipe.execute()
                return True
            except WatchError:
                logger.warning(f"Concurrent write to session {state.session_id} snapshot, not overwriting")
                return False

    async def delete(self, session_id: str) -> None:
        await self.redis.delete(self._key(session_id))


class SessionRegistry:
    """Process-wide map of live diagnostic sessions"""

    def __init__(
        self,
        gateway: InferenceGateway,
        store: Optional[SessionStore] = None,
        llm_settings: Optional[LLMSettings] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.llm_settings = llm_settings
        self._sessions: Dict[str, DiagnosticSession] = {}
        self._loading: Dict[str, asyncio.Future] = {}
        # Snapshot version last written (or read) per session
        self._persisted: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> Optional[DiagnosticSession]:
        return self._sessions.get(session_id)

    def _insert(self, state: SessionState) -> DiagnosticSession:
        existing = self._sessions.get(state.session_id)
        if existing is not None:
            return existing
        session = DiagnosticSession(state, self.gateway, llm_settings=self.llm_settings)
        self._sessions[state.session_id] = session
        return session

    async def _load_or_create(self, session_id: str, vehicle: VehicleContext) -> DiagnosticSession:
        state = None
        try:
            state = await self.store.load(session_id)
        except RedisError as e:
            logger.warning(f"Session store unavailable while loading {session_id}, starting fresh: {e}")

        if state is None:
            state = SessionState(session_id=session_id, vehicle=vehicle)
            logger.info(f"Created session {session_id} for {vehicle.describe()}")
        else:
            self._persisted[session_id] = state.version
            logger.info(f"Restored session {session_id} at v{state.version}")
        return self._insert(state)

    async def get_or_create(
        self, session_id: str, vehicle: Optional[VehicleContext] = None
    ) -> DiagnosticSession:
        """Return the live session for ``session_id``, creating it on first use.

        ``vehicle`` only applies when the session is created; the vehicle of
        an existing session never changes.
        """
        session = self._sessions.get(session_id)
        if session is not None:
            return session

        vehicle = vehicle or VehicleContext()
        if self.store is None:
            session = self._insert(SessionState(session_id=session_id, vehicle=vehicle))
            logger.info(f"Created session {session_id} for {vehicle.describe()}")
            return session

        # One loader per id; concurrent first requests await the same future
        pending = self._loading.get(session_id)
        if pending is None:
            pending = asyncio.ensure_future(self._load_or_create(session_id, vehicle))
            self._loading[session_id] = pending
            pending.add_done_callback(lambda _: self._loading.pop(session_id, None))
        return await asyncio.shield(pending)

    async def persist(self, session: DiagnosticSession) -> bool:
        """Write a snapshot of ``session`` to the store (no-op without one)"""
        if self.store is None:
            return True

        state = session.state
        expected = self._persisted.get(state.session_id, 0)
        try:
            saved = await self.store.save(state, expected)
        except RedisError as e:
            logger.warning(f"Failed to persist session {state.session_id}: {e}")
            return False
        if saved:
            self._persisted[state.session_id] = state.version
        return saved

    async def remove(self, session_id: str) -> bool:
        """Forget a session (and its snapshot)"""
        session = self._sessions.pop(session_id, None)
        self._persisted.pop(session_id, None)
        if self.store is not None:
            await self.store.delete(session_id)
        return session is not None

    def clear(self):
        """Drop every live session (snapshots are kept)"""
        self._sessions.clear()
        self._persisted.clear()
        self._loading.clear()
