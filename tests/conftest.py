"""Shared pytest fixtures."""

import hashlib
import hmac
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from telegate.config import Config
from telegate.core.core import Core
from telegate.core.modules.session.store import MemorySessionStore
from telegate.core.modules.verifier.models import VerifiedIdentity

BOT_TOKEN = "botsecret"
BOT_API_SECRET = "internal-bot-secret"


class FakeClock:
    """Settable clock passed to stores instead of the wall clock."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)

    def timestamp(self) -> int:
        return int(self.current.timestamp())


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def store(clock):
    return MemorySessionStore(clock=clock)


@pytest.fixture
def config():
    return Config(_env_file=None, bot_token=BOT_TOKEN, bot_api_secret=BOT_API_SECRET)


@pytest.fixture
def core(config, store):
    return Core(config, store)


@pytest.fixture
def identity():
    return VerifiedIdentity(external_user_id=42, first_name="Ann")


@pytest.fixture
def sign() -> Callable[..., dict[str, Any]]:
    """Build a provider assertion signed the way the login widget signs it."""

    def _sign(secret: str = BOT_TOKEN, **fields: Any) -> dict[str, Any]:
        check_string = "\n".join(f"{key}={value}" for key, value in sorted(fields.items()) if value not in (None, ""))
        secret_key = hmac.new(b"WebAppData", secret.encode(), hashlib.sha256).digest()
        signature = hmac.new(secret_key, check_string.encode(), hashlib.sha256).hexdigest()
        return {**fields, "hash": signature}

    return _sign
