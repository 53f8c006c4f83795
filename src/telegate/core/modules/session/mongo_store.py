"""MongoDB-backed session store."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any

import structlog
from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from telegate.core.modules.session.models import SESSION_TIMEOUT, Session
from telegate.core.modules.session.store import Clock, SessionStore, generate_session_id
from telegate.core.modules.verifier.models import VerifiedIdentity
from telegate.errors import StoreError
from telegate.utils import now, short_id

logger = structlog.get_logger(__name__)

# Concurrent upserts for one user can collide on the unique index; the loser retries and finds the winner
UPSERT_ATTEMPTS = 3


@contextmanager
def backend_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into StoreError."""
    try:
        yield
    except PyMongoError as e:
        logger.exception("session_store_failed", operation=operation)
        raise StoreError(f"Session store unavailable during {operation}") from e


class MongoSessionStore(SessionStore):
    """Session store persisted in the `sessions` collection.

    Each mutation is a single-document atomic update, which serializes
    writes per external user without a process-level lock.
    """

    def __init__(
        self,
        database: AsyncDatabase[dict[str, Any]],
        clock: Clock = now,
        timeout: timedelta = SESSION_TIMEOUT,
    ) -> None:
        super().__init__(clock, timeout)
        self._collection = database.get_collection("sessions")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        with backend_errors("on_start"):
            # One record per provider user
            await self._collection.create_index([("external_user_id", 1)], unique=True)
            # Token lookups; documents without a token stay out of the index
            await self._collection.create_index(
                [("correlation_token", 1)],
                unique=True,
                partialFilterExpression={"correlation_token": {"$type": "string"}},
            )
            # TTL index as a backstop for the cleanup sweep
            await self._collection.create_index(
                [("last_activity_at", 1)], expireAfterSeconds=int(self.timeout.total_seconds())
            )

    def _cutoff(self, at: datetime) -> datetime:
        return at - self.timeout

    async def create(self, identity: VerifiedIdentity, correlation_token: str | None = None) -> Session:
        with backend_errors("create"):
            at = self.clock()
            await self._collection.delete_one(
                {"external_user_id": identity.external_user_id, "last_activity_at": {"$lt": self._cutoff(at)}}
            )
            fields: dict[str, Any] = {**identity.model_dump(), "last_activity_at": at}
            if correlation_token is not None:
                await self._release_token(correlation_token, identity.external_user_id)
                fields["correlation_token"] = correlation_token

            for attempt in range(UPSERT_ATTEMPTS):
                try:
                    doc = await self._collection.find_one_and_update(
                        {"external_user_id": identity.external_user_id},
                        {"$set": fields, "$setOnInsert": {"_id": generate_session_id(), "created_at": at}},
                        upsert=True,
                        return_document=ReturnDocument.AFTER,
                    )
                except DuplicateKeyError:
                    if attempt == UPSERT_ATTEMPTS - 1:
                        raise
                    continue
                session = Session.from_mongo(doc)
                logger.debug("session_upserted", session=short_id(session.session_id), external_user_id=session.external_user_id)
                return session
        raise StoreError("Session upsert did not complete")  # pragma: no cover

    async def get_by_session_id(self, session_id: str) -> Session | None:
        with backend_errors("get_by_session_id"):
            at = self.clock()
            doc = await self._collection.find_one_and_update(
                {"_id": session_id, "last_activity_at": {"$gte": self._cutoff(at)}},
                {"$max": {"last_activity_at": at}},
                return_document=ReturnDocument.AFTER,
            )
            if doc is None:
                await self._collection.delete_one({"_id": session_id, "last_activity_at": {"$lt": self._cutoff(at)}})
                return None
            return Session.from_mongo(doc)

    async def get_by_external_user_id(self, external_user_id: int) -> Session | None:
        with backend_errors("get_by_external_user_id"):
            return await self._find_live({"external_user_id": external_user_id})

    async def get_by_correlation_token(self, token: str) -> Session | None:
        with backend_errors("get_by_correlation_token"):
            return await self._find_live({"correlation_token": token})

    async def delete(self, session_id: str) -> bool:
        with backend_errors("delete"):
            cutoff = self._cutoff(self.clock())
            result = await self._collection.delete_one({"_id": session_id, "last_activity_at": {"$gte": cutoff}})
            if result.deleted_count == 1:
                return True
            # Idle records count as absent but are still removed
            await self._collection.delete_one({"_id": session_id, "last_activity_at": {"$lt": cutoff}})
            return False

    async def upsert_correlation_token(self, external_user_id: int, token: str) -> Session | None:
        with backend_errors("upsert_correlation_token"):
            await self._release_token(token, external_user_id)
            doc = await self._collection.find_one_and_update(
                {"external_user_id": external_user_id, "last_activity_at": {"$gte": self._cutoff(self.clock())}},
                {"$set": {"correlation_token": token}},
                return_document=ReturnDocument.AFTER,
            )
            return None if doc is None else Session.from_mongo(doc)

    async def delete_expired(self) -> int:
        with backend_errors("delete_expired"):
            result = await self._collection.delete_many({"last_activity_at": {"$lt": self._cutoff(self.clock())}})
            return result.deleted_count

    async def _find_live(self, query: dict[str, Any]) -> Session | None:
        doc = await self._collection.find_one(query)
        if doc is None:
            return None
        session = Session.from_mongo(doc)
        if session.is_expired(self.clock(), self.timeout):
            await self._collection.delete_one({"_id": session.session_id, "last_activity_at": session.last_activity_at})
            return None
        return session

    async def _release_token(self, token: str, external_user_id: int) -> None:
        """Unbind token from any other user's session."""
        await self._collection.update_many(
            {"correlation_token": token, "external_user_id": {"$ne": external_user_id}},
            {"$unset": {"correlation_token": ""}},
        )
