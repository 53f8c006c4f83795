"""Session store interface and the in-memory implementation."""

import asyncio
import secrets
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Callable, Hashable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

import structlog

from telegate.core.modules.session.models import SESSION_TIMEOUT, Session, SessionId
from telegate.core.modules.verifier.models import VerifiedIdentity
from telegate.utils import now, short_id

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def generate_session_id() -> SessionId:
    """256 random bits, hex encoded."""
    return SessionId(secrets.token_hex(32))


class SessionStore(ABC):
    """Expiring session records reachable by session id, external user id and correlation token.

    Implementations own their locking. `create` is an atomic
    insert-or-return-existing keyed by external user id, so at most one
    live session exists per external user.
    """

    def __init__(self, clock: Clock = now, timeout: timedelta = SESSION_TIMEOUT) -> None:
        self.clock = clock
        self.timeout = timeout

    async def on_start(self) -> None:
        """Prepare the backend on application startup."""

    async def on_stop(self) -> None:
        """Release backend resources on shutdown."""

    @abstractmethod
    async def create(self, identity: VerifiedIdentity, correlation_token: str | None = None) -> Session:
        """Return the live session for identity.external_user_id, creating it if needed.

        An existing live session keeps its session_id and gets its identity
        fields refreshed, its activity bumped and the token attached.
        """

    @abstractmethod
    async def get_by_session_id(self, session_id: str) -> Session | None:
        """Live session by id; bumps last_activity_at."""

    @abstractmethod
    async def get_by_external_user_id(self, external_user_id: int) -> Session | None:
        """Live session for a provider user; read-only."""

    @abstractmethod
    async def get_by_correlation_token(self, token: str) -> Session | None:
        """Live session carrying the token; read-only."""

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Remove a session, returning whether a live one existed. Idle records are evicted and count as absent."""

    @abstractmethod
    async def upsert_correlation_token(self, external_user_id: int, token: str) -> Session | None:
        """Attach a token to the user's live session, no-op when there is none."""

    @abstractmethod
    async def delete_expired(self) -> int:
        """Remove every idle session and return how many were removed."""


class KeyedLocks:
    """One asyncio.Lock per key, dropped once nobody holds or waits for it."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._holders: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncGenerator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class MemorySessionStore(SessionStore):
    """Session store kept in process memory.

    Mutations of one external user's record are serialized by a per-user lock;
    records of different users never wait on each other.
    """

    def __init__(self, clock: Clock = now, timeout: timedelta = SESSION_TIMEOUT) -> None:
        super().__init__(clock, timeout)
        self._sessions: dict[str, Session] = {}
        self._by_user: dict[int, str] = {}
        self._by_token: dict[str, str] = {}
        self._locks = KeyedLocks()

    def __len__(self) -> int:
        return len(self._sessions)

    async def create(self, identity: VerifiedIdentity, correlation_token: str | None = None) -> Session:
        async with self._locks.hold(identity.external_user_id):
            at = self.clock()
            existing = self._live(self._by_user.get(identity.external_user_id), at)
            if existing is None:
                session = Session.new(generate_session_id(), identity, None, at)
                logger.debug("session_created", session=short_id(session.session_id), external_user_id=identity.external_user_id)
            else:
                session = existing.model_copy(update={**identity.model_dump(), "last_activity_at": at})
                logger.debug("session_reused", session=short_id(session.session_id), external_user_id=identity.external_user_id)
            if correlation_token is not None:
                session = self._with_token(session, correlation_token)
            self._put(session)
            return session

    async def get_by_session_id(self, session_id: str) -> Session | None:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        async with self._locks.hold(session.external_user_id):
            at = self.clock()
            session = self._live(session_id, at)
            if session is None:
                return None
            session = session.model_copy(update={"last_activity_at": max(at, session.last_activity_at)})
            self._put(session)
            return session

    async def get_by_external_user_id(self, external_user_id: int) -> Session | None:
        async with self._locks.hold(external_user_id):
            return self._live(self._by_user.get(external_user_id), self.clock())

    async def get_by_correlation_token(self, token: str) -> Session | None:
        session_id = self._by_token.get(token)
        if session_id is None:
            return None
        session = self._sessions[session_id]
        async with self._locks.hold(session.external_user_id):
            return self._live(self._by_token.get(token), self.clock())

    async def delete(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        async with self._locks.hold(session.external_user_id):
            session = self._live(session_id, self.clock())
            if session is None:
                return False
            self._remove(session)
            return True

    async def upsert_correlation_token(self, external_user_id: int, token: str) -> Session | None:
        async with self._locks.hold(external_user_id):
            session = self._live(self._by_user.get(external_user_id), self.clock())
            if session is None:
                return None
            session = self._with_token(session, token)
            self._put(session)
            return session

    async def delete_expired(self) -> int:
        removed = 0
        for session_id in list(self._sessions):
            session = self._sessions.get(session_id)
            if session is None:
                continue
            async with self._locks.hold(session.external_user_id):
                session = self._sessions.get(session_id)
                if session is not None and session.is_expired(self.clock(), self.timeout):
                    self._remove(session)
                    removed += 1
            # Yield between records so requests are not starved during a long sweep
            await asyncio.sleep(0)
        return removed

    def _live(self, session_id: str | None, at: datetime) -> Session | None:
        """Return the session if it is still live, evicting it otherwise. Caller holds its user lock."""
        if session_id is None:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.is_expired(at, self.timeout):
            self._remove(session)
            logger.debug("session_expired", session=short_id(session_id), external_user_id=session.external_user_id)
            return None
        return session

    def _with_token(self, session: Session, token: str) -> Session:
        """Bind token to session, unbinding it from whichever session held it before."""
        holder_id = self._by_token.get(token)
        if holder_id is not None and holder_id != session.session_id:
            holder = self._sessions[holder_id]
            self._sessions[holder_id] = holder.model_copy(update={"correlation_token": None})
        return session.model_copy(update={"correlation_token": token})

    def _put(self, session: Session) -> None:
        previous = self._sessions.get(session.session_id)
        if previous is not None and previous.correlation_token not in (None, session.correlation_token):
            self._by_token.pop(previous.correlation_token, None)
        self._sessions[session.session_id] = session
        self._by_user[session.external_user_id] = session.session_id
        if session.correlation_token is not None:
            self._by_token[session.correlation_token] = session.session_id

    def _remove(self, session: Session) -> None:
        self._sessions.pop(session.session_id, None)
        if self._by_user.get(session.external_user_id) == session.session_id:
            del self._by_user[session.external_user_id]
        if session.correlation_token is not None and self._by_token.get(session.correlation_token) == session.session_id:
            del self._by_token[session.correlation_token]
