"""Session management models."""

from datetime import datetime, timedelta
from typing import ClassVar, NewType

from pydantic import Field

from telegate.core.db import MongoModel
from telegate.core.modules.verifier.models import VerifiedIdentity
from telegate.utils import now

SessionId = NewType("SessionId", str)

SESSION_TIMEOUT = timedelta(days=7)


class Session(MongoModel):
    """Authentication state of one external user.

    Stored under session_id, indexed on external_user_id (unique),
    correlation_token (unique where set) and last_activity_at.
    """

    id_field: ClassVar[str] = "session_id"

    session_id: str
    external_user_id: int
    first_name: str
    last_name: str | None = None
    username: str | None = None
    photo_url: str | None = None
    correlation_token: str | None = None
    created_at: datetime = Field(default_factory=now)
    last_activity_at: datetime = Field(default_factory=now)

    @classmethod
    def new(cls, session_id: str, identity: VerifiedIdentity, correlation_token: str | None, at: datetime) -> "Session":
        return cls(
            session_id=session_id,
            correlation_token=correlation_token,
            created_at=at,
            last_activity_at=at,
            **identity.model_dump(),
        )

    @property
    def identity(self) -> VerifiedIdentity:
        return VerifiedIdentity(
            external_user_id=self.external_user_id,
            first_name=self.first_name,
            last_name=self.last_name,
            username=self.username,
            photo_url=self.photo_url,
        )

    def is_expired(self, at: datetime, timeout: timedelta = SESSION_TIMEOUT) -> bool:
        return at - self.last_activity_at > timeout
