import hmac
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from typing import Any

from telegate.config import Config
from telegate.core.core import Core
from telegate.core.modules.auth.models import AuthResult, BotLogin, SessionView, TokenCheckResult
from telegate.core.modules.session.models import SessionId
from telegate.core.modules.session.store import SessionStore
from telegate.errors import AccessDeniedError, NotConfiguredError, NotFoundError


class App:
    """Facade for all application operations, checks caller trust before delegating to Core."""

    def __init__(self, config: Config, store: SessionStore | None = None) -> None:
        self._core = Core(config, store)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    async def login(self, assertion: Mapping[str, Any], channel: str = "widget") -> AuthResult:
        """Verify a provider assertion and return the user's session."""
        return await self._core.services.auth.login_with_assertion(assertion, channel)

    async def bot_login(self, bot_secret: str | None, request: BotLogin) -> AuthResult:
        """Record a login confirmed by the bot integration (trusted callers only)."""
        self._ensure_bot_caller(bot_secret)
        return await self._core.services.auth.bot_login(request.identity, request.correlation_token)

    async def check_token(self, correlation_token: str) -> TokenCheckResult:
        """Report whether a correlation token has become a session."""
        return await self._core.services.auth.check_token(correlation_token)

    async def get_current_session(self, session_id: SessionId) -> SessionView:
        """Get the current session and its user."""
        session = await self._core.services.auth.get_current_session(session_id)
        return SessionView.from_session(session)

    async def logout(self, session_id: SessionId) -> None:
        """Invalidate a session. Raises NotFoundError if there was none."""
        if not await self._core.services.auth.logout(session_id):
            raise NotFoundError

    def _ensure_bot_caller(self, bot_secret: str | None) -> None:
        expected = self._core.config.bot_api_secret
        if not expected:
            raise NotConfiguredError("Bot login not configured")
        if bot_secret is None or not hmac.compare_digest(bot_secret.encode(), expected.encode()):
            raise AccessDeniedError("Bot login is restricted to the bot integration")
