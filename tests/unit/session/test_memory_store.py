"""Tests for the in-memory session store."""

import asyncio
import re

from telegate.core.modules.session.store import KeyedLocks
from telegate.core.modules.verifier.models import VerifiedIdentity


class TestCreate:
    """Tests for create."""

    async def test_round_trip(self, store, identity):
        """Test that a created session is found by id with identity unchanged."""
        created = await store.create(identity)
        found = await store.get_by_session_id(created.session_id)
        assert found is not None
        assert found.identity == identity
        assert found.last_activity_at >= found.created_at

    async def test_session_id_is_64_hex_chars(self, store, identity):
        """Test that session ids carry 256 bits of hex-encoded randomness."""
        session = await store.create(identity)
        assert re.fullmatch(r"[0-9a-f]{64}", session.session_id)

    async def test_session_ids_differ_per_user(self, store):
        """Test that different users get different session ids."""
        first = await store.create(VerifiedIdentity(external_user_id=1, first_name="A"))
        second = await store.create(VerifiedIdentity(external_user_id=2, first_name="B"))
        assert first.session_id != second.session_id

    async def test_second_login_reuses_session(self, store, identity, clock):
        """Test that a repeated login returns the same session id and refreshes identity."""
        first = await store.create(identity)
        clock.advance(minutes=5)
        second = await store.create(VerifiedIdentity(external_user_id=42, first_name="Anna", username="anna"))
        assert second.session_id == first.session_id
        assert second.first_name == "Anna"
        assert second.username == "anna"
        assert second.created_at == first.created_at
        assert second.last_activity_at == clock()
        assert len(store) == 1

    async def test_concurrent_creates_converge(self, store, identity):
        """Test that concurrent logins for one user yield a single session id."""
        results = await asyncio.gather(*(store.create(identity) for _ in range(10)))
        assert len({session.session_id for session in results}) == 1
        assert len(store) == 1

    async def test_expired_session_is_replaced(self, store, identity, clock):
        """Test that logging in after expiry mints a new session id."""
        first = await store.create(identity)
        clock.advance(days=7, seconds=1)
        second = await store.create(identity)
        assert second.session_id != first.session_id
        assert await store.get_by_session_id(first.session_id) is None

    async def test_create_with_token(self, store, identity):
        """Test that a token passed to create is indexed."""
        session = await store.create(identity, "tok-123")
        found = await store.get_by_correlation_token("tok-123")
        assert found is not None
        assert found.session_id == session.session_id


class TestGetBySessionId:
    """Tests for get_by_session_id."""

    async def test_unknown_id(self, store):
        """Test that an unknown id returns None."""
        assert await store.get_by_session_id("nope") is None

    async def test_bumps_activity(self, store, identity, clock):
        """Test that a read updates last_activity_at."""
        session = await store.create(identity)
        clock.advance(hours=3)
        found = await store.get_by_session_id(session.session_id)
        assert found.last_activity_at == clock()
        assert found.created_at == session.created_at

    async def test_activity_keeps_session_alive(self, store, identity, clock):
        """Test that reads inside the timeout extend the session past the original deadline."""
        session = await store.create(identity)
        for _ in range(3):
            clock.advance(days=6)
            assert await store.get_by_session_id(session.session_id) is not None

    async def test_expired_is_absent_and_evicted(self, store, identity, clock):
        """Test that a session idle for longer than the timeout is gone from every index."""
        session = await store.create(identity, "tok-1")
        clock.advance(days=7, seconds=1)
        assert await store.get_by_session_id(session.session_id) is None
        assert len(store) == 0
        assert await store.get_by_external_user_id(42) is None
        assert await store.get_by_correlation_token("tok-1") is None

    async def test_exactly_timeout_is_live(self, store, identity, clock):
        """Test that the timeout boundary itself is still live."""
        session = await store.create(identity)
        clock.advance(days=7)
        assert await store.get_by_session_id(session.session_id) is not None


class TestReadOnlyLookups:
    """Tests for lookups by external user id and correlation token."""

    async def test_by_external_user_id(self, store, identity):
        """Test that the user index points at the created session."""
        session = await store.create(identity)
        found = await store.get_by_external_user_id(42)
        assert found.session_id == session.session_id

    async def test_by_external_user_id_does_not_bump(self, store, identity, clock):
        """Test that probing by user id leaves activity untouched."""
        session = await store.create(identity)
        clock.advance(hours=1)
        found = await store.get_by_external_user_id(42)
        assert found.last_activity_at == session.last_activity_at

    async def test_by_token_does_not_bump(self, store, identity, clock):
        """Test that polling by token leaves activity untouched."""
        session = await store.create(identity, "tok-1")
        clock.advance(hours=1)
        found = await store.get_by_correlation_token("tok-1")
        assert found.last_activity_at == session.last_activity_at

    async def test_unknown_token(self, store):
        """Test that an unknown token returns None."""
        assert await store.get_by_correlation_token("tok-unknown") is None


class TestCorrelationTokens:
    """Tests for token attachment."""

    async def test_upsert_attaches_to_existing(self, store, identity):
        """Test that attaching a token keeps the session id."""
        session = await store.create(identity)
        updated = await store.upsert_correlation_token(42, "tok-9")
        assert updated.session_id == session.session_id
        assert (await store.get_by_correlation_token("tok-9")).session_id == session.session_id

    async def test_upsert_without_session_is_noop(self, store):
        """Test that attaching to a user without a session changes nothing."""
        assert await store.upsert_correlation_token(42, "tok-9") is None
        assert await store.get_by_correlation_token("tok-9") is None
        assert len(store) == 0

    async def test_new_token_replaces_old(self, store, identity):
        """Test that a session carries only its latest token."""
        await store.create(identity, "tok-old")
        await store.upsert_correlation_token(42, "tok-new")
        assert await store.get_by_correlation_token("tok-old") is None
        assert await store.get_by_correlation_token("tok-new") is not None

    async def test_token_moves_between_users(self, store):
        """Test that reusing a token for another user unbinds it from the first."""
        first = await store.create(VerifiedIdentity(external_user_id=1, first_name="A"), "tok-1")
        second = await store.create(VerifiedIdentity(external_user_id=2, first_name="B"), "tok-1")
        assert (await store.get_by_correlation_token("tok-1")).session_id == second.session_id
        assert (await store.get_by_external_user_id(1)).correlation_token is None
        assert (await store.get_by_session_id(first.session_id)) is not None

    async def test_indexes_agree(self, store, identity):
        """Test that user and token indexes resolve to the same record."""
        await store.create(identity)
        await store.create(identity, "tok-1")
        by_user = await store.get_by_external_user_id(42)
        by_token = await store.get_by_correlation_token("tok-1")
        assert by_user == by_token


class TestDelete:
    """Tests for delete."""

    async def test_delete_is_idempotent(self, store, identity):
        """Test that delete reports True once, then False."""
        session = await store.create(identity, "tok-1")
        assert await store.delete(session.session_id) is True
        assert await store.delete(session.session_id) is False
        assert await store.get_by_session_id(session.session_id) is None
        assert await store.get_by_external_user_id(42) is None
        assert await store.get_by_correlation_token("tok-1") is None

    async def test_delete_idle_session_reports_absent(self, store, identity, clock):
        """Test that deleting a session past the timeout evicts it and returns False."""
        session = await store.create(identity, "tok-1")
        clock.advance(days=7, seconds=1)
        assert await store.delete(session.session_id) is False
        assert len(store) == 0
        assert await store.get_by_correlation_token("tok-1") is None

    async def test_login_after_delete_gets_new_id(self, store, identity):
        """Test that a deleted session id is never handed out again."""
        session = await store.create(identity)
        await store.delete(session.session_id)
        again = await store.create(identity)
        assert again.session_id != session.session_id


class TestDeleteExpired:
    """Tests for delete_expired."""

    async def test_removes_only_idle_sessions(self, store, clock):
        """Test that the sweep keeps live sessions and removes idle ones."""
        await store.create(VerifiedIdentity(external_user_id=1, first_name="A"))
        clock.advance(days=4)
        await store.create(VerifiedIdentity(external_user_id=2, first_name="B"))
        clock.advance(days=3, seconds=1)
        assert await store.delete_expired() == 1
        assert await store.get_by_external_user_id(1) is None
        assert await store.get_by_external_user_id(2) is not None

    async def test_empty_store(self, store):
        """Test that sweeping an empty store removes nothing."""
        assert await store.delete_expired() == 0


class TestKeyedLocks:
    """Tests for per-key locking."""

    async def test_locks_are_released(self):
        """Test that unused locks are dropped."""
        locks = KeyedLocks()
        async with locks.hold(1):
            assert len(locks) == 1
        assert len(locks) == 0

    async def test_same_key_serialized(self):
        """Test that holders of one key run one at a time."""
        locks = KeyedLocks()
        active = 0
        peak = 0

        async def worker():
            nonlocal active, peak
            async with locks.hold("k"):
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0)
                active -= 1

        await asyncio.gather(*(worker() for _ in range(5)))
        assert peak == 1

    async def test_different_keys_do_not_block(self):
        """Test that a held key does not block another key."""
        locks = KeyedLocks()
        async with locks.hold("a"):
            await asyncio.wait_for(_acquire(locks, "b"), timeout=1)


async def _acquire(locks, key):
    async with locks.hold(key):
        return True
