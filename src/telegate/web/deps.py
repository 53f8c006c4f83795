from typing import Annotated, cast

from fastapi import Depends, Request
from fastapi.security import APIKeyCookie, APIKeyHeader, APIKeyQuery, HTTPAuthorizationCredentials, HTTPBearer

from telegate.app import App
from telegate.config import Config
from telegate.core.modules.session.models import SessionId
from telegate.errors import AuthenticationError

# Security schemes, in lookup order
bearer_scheme = HTTPBearer(auto_error=False)
header_scheme = APIKeyHeader(name="X-Session-Id", auto_error=False)
query_scheme = APIKeyQuery(name="sessionId", auto_error=False)
cookie_scheme = APIKeyCookie(name="session_id", auto_error=False)
bot_secret_scheme = APIKeyHeader(name="X-Bot-Secret", auto_error=False)


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_config(request: Request) -> Config:
    return cast(Config, request.app.state.config)


async def get_session_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
    header_value: Annotated[str | None, Depends(header_scheme)] = None,
    query_value: Annotated[str | None, Depends(query_scheme)] = None,
    cookie_value: Annotated[str | None, Depends(cookie_scheme)] = None,
) -> SessionId | None:
    """Session id from the Authorization Bearer header, X-Session-Id header, sessionId query or cookie."""
    if credentials and credentials.credentials:
        return SessionId(credentials.credentials)
    for value in (header_value, query_value, cookie_value):
        if value:
            return SessionId(value)
    return None


async def require_session_id(session_id: Annotated[SessionId | None, Depends(get_session_id)]) -> SessionId:
    if session_id is None:
        raise AuthenticationError("No session provided")
    return session_id


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
ConfigDep = Annotated[Config, Depends(get_config)]
OptionalSessionIdDep = Annotated[SessionId | None, Depends(get_session_id)]
SessionIdDep = Annotated[SessionId, Depends(require_session_id)]
BotSecretDep = Annotated[str | None, Depends(bot_secret_scheme)]
