from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from telegate.core.modules.session.models import Session
from telegate.core.modules.verifier.models import VerifiedIdentity


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuthResult(CamelModel):
    """Outcome of a successful login on any channel."""

    identity: VerifiedIdentity = Field(..., description="Authenticated user")
    session_id: str = Field(..., description="Session identifier for subsequent requests")

    @classmethod
    def from_session(cls, session: Session) -> "AuthResult":
        return cls(identity=session.identity, session_id=session.session_id)


class SessionView(AuthResult):
    """Current session as returned by /auth/me."""

    created_at: datetime = Field(..., description="When the session was created")
    last_activity_at: datetime = Field(..., description="Last successful use of the session")

    @classmethod
    def from_session(cls, session: Session) -> "SessionView":
        return cls(
            identity=session.identity,
            session_id=session.session_id,
            created_at=session.created_at,
            last_activity_at=session.last_activity_at,
        )


class TokenCheckResult(CamelModel):
    """Polling answer for a correlation token."""

    authenticated: bool = Field(..., description="Whether the token has turned into a session")
    identity: VerifiedIdentity | None = Field(None, description="Authenticated user, when authenticated")
    session_id: str | None = Field(None, description="Session identifier, when authenticated")


class BotLogin(VerifiedIdentity):
    """Identity pushed by the bot integration, with the browser's correlation token."""

    correlation_token: str = Field(..., min_length=1, description="Token minted by the waiting browser")

    @property
    def identity(self) -> VerifiedIdentity:
        return VerifiedIdentity.model_validate(self.model_dump(exclude={"correlation_token"}))
