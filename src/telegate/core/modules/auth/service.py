from collections.abc import Mapping
from typing import Any

import structlog

from telegate.core.core import Service
from telegate.core.modules.auth.models import AuthResult, TokenCheckResult
from telegate.core.modules.session.models import Session
from telegate.core.modules.verifier.models import VerifiedIdentity
from telegate.core.modules.verifier.verify import parse_assertion, verify
from telegate.errors import AuthenticationError, NotConfiguredError, VerificationError
from telegate.utils import short_id

logger = structlog.get_logger(__name__)


class AuthService(Service):
    """Turns logins from the widget, the redirect callback and the bot into sessions.

    Every channel ends in SessionStore.create, which upserts by external user
    id, so channels racing for one user converge on a single session.
    """

    def _shared_secret(self) -> str:
        secret = self.core.config.bot_token
        if not secret:
            logger.error("bot_token_not_configured")
            raise NotConfiguredError("Telegram authentication not configured")
        return secret

    async def login_with_assertion(self, raw: Mapping[str, Any], channel: str = "widget") -> AuthResult:
        """Verify a signed assertion and open (or reuse) the user's session.

        Raises:
            NotConfiguredError: No shared secret configured
            MissingFieldsError: Required assertion field absent
            AuthenticationError: Assertion malformed, expired or badly signed
        """
        secret = self._shared_secret()
        try:
            assertion = parse_assertion(raw)
            identity = verify(assertion, secret, now=int(self.store.clock().timestamp()))
        except VerificationError as e:
            logger.warning("login_rejected", channel=channel, reason=type(e).__name__, external_user_id=raw.get("id"))
            raise AuthenticationError("Invalid authentication data") from e

        session = await self.store.create(identity)
        logger.info(
            "login_succeeded", channel=channel, external_user_id=identity.external_user_id, session=short_id(session.session_id)
        )
        return AuthResult.from_session(session)

    async def bot_login(self, identity: VerifiedIdentity, correlation_token: str) -> AuthResult:
        """Record a login the bot integration already authenticated.

        Reuses the live session of the user when there is one, refreshing its
        identity fields and attaching the token. Callers must be trusted.
        """
        session = await self.store.create(identity, correlation_token)
        logger.info("bot_login_succeeded", external_user_id=identity.external_user_id, session=short_id(session.session_id))
        return AuthResult.from_session(session)

    async def check_token(self, correlation_token: str) -> TokenCheckResult:
        session = await self.store.get_by_correlation_token(correlation_token)
        if session is None:
            return TokenCheckResult(authenticated=False)
        return TokenCheckResult(authenticated=True, identity=session.identity, session_id=session.session_id)

    async def get_current_session(self, session_id: str) -> Session:
        """Resolve a session id to its live session, bumping its activity."""
        session = await self.store.get_by_session_id(session_id)
        if session is None:
            raise AuthenticationError
        return session

    async def logout(self, session_id: str) -> bool:
        deleted = await self.store.delete(session_id)
        if deleted:
            logger.info("session_deleted", session=short_id(session_id))
        return deleted
