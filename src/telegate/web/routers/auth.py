from typing import Any

from fastapi import APIRouter, Body, Query, Request, Response
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from telegate.core.modules.auth.models import AuthResult, BotLogin, SessionView, TokenCheckResult
from telegate.core.modules.session.models import SessionId
from telegate.errors import StoreError, UserError, ValidationError
from telegate.web.deps import AppDep, BotSecretDep, ConfigDep, OptionalSessionIdDep, SessionIdDep
from telegate.web.error_handlers import classify_user_error
from telegate.web.openapi import ErrorResponse
from telegate.web.pages import render_error_page, render_success_page

router = APIRouter(tags=["auth"])

SESSION_COOKIE = "session_id"

ERROR_PAGE_TITLES = {
    400: "Authentication Error",
    401: "Authentication Failed",
    500: "Authentication Error",
    503: "Authentication Error",
}


class LogoutRequest(BaseModel):
    """Optional logout body for clients that cannot set headers."""

    session_id: str | None = Field(None, alias="sessionId", description="Session to end")


class LogoutResponse(BaseModel):
    success: bool = Field(..., description="Always true when the session was removed")


@router.post(
    "/auth/login",
    summary="Log in with a provider assertion",
    description="Verify the signed login widget data and return the user's session.",
    operation_id="login",
    responses={
        200: {"description": "Successfully authenticated"},
        400: {"model": ErrorResponse, "description": "Missing required authentication fields"},
        401: {"model": ErrorResponse, "description": "Invalid authentication data"},
        500: {"model": ErrorResponse, "description": "Authentication not configured"},
    },
)
async def login(
    app: AppDep, config: ConfigDep, response: Response, assertion: dict[str, Any] = Body(...)
) -> AuthResult:
    result = await app.login(assertion, channel="widget")

    # Set cookie for browser-based clients
    response.set_cookie(
        key=SESSION_COOKIE,
        value=result.session_id,
        httponly=True,
        samesite="lax",
        max_age=config.session_timeout_seconds,
    )
    return result


@router.get(
    "/auth/callback",
    summary="Provider redirect callback",
    description="Verify login data passed as query parameters and relay the session to the opener window.",
    operation_id="loginCallback",
    response_class=HTMLResponse,
    responses={
        200: {"description": "Page posting the session to the opener window"},
        400: {"description": "Error page: missing required fields"},
        401: {"description": "Error page: invalid authentication data"},
        500: {"description": "Error page: authentication not configured"},
    },
)
async def login_callback(request: Request, app: AppDep, config: ConfigDep) -> HTMLResponse:
    try:
        result = await app.login(dict(request.query_params), channel="callback")
    except UserError as e:
        status_code, _ = classify_user_error(e)
        title = ERROR_PAGE_TITLES.get(status_code, "Authentication Error")
        return HTMLResponse(render_error_page(title, str(e)), status_code=status_code)
    except StoreError:
        return HTMLResponse(
            render_error_page(ERROR_PAGE_TITLES[503], "Please try again later."), status_code=503
        )
    return HTMLResponse(render_success_page(result, config.callback_target_origin))


@router.get(
    "/auth/me",
    summary="Get current session",
    description="Return the user and timestamps of the session. Counts as session activity.",
    operation_id="getCurrentSession",
    responses={
        200: {"description": "Current session"},
        401: {"model": ErrorResponse, "description": "No session, or session invalid or expired"},
    },
)
async def get_current_session(app: AppDep, session_id: SessionIdDep) -> SessionView:
    return await app.get_current_session(session_id)


@router.post(
    "/auth/logout",
    summary="End session",
    description="Delete the session. Repeating the call for the same session returns 404.",
    operation_id="logout",
    responses={
        200: {"description": "Session deleted"},
        400: {"model": ErrorResponse, "description": "No session provided"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def logout(
    app: AppDep, session_id: OptionalSessionIdDep, response: Response, body: LogoutRequest | None = None
) -> LogoutResponse:
    if session_id is None and body is not None and body.session_id:
        session_id = SessionId(body.session_id)
    if session_id is None:
        raise ValidationError("No session provided")

    await app.logout(session_id)
    response.delete_cookie(SESSION_COOKIE)
    return LogoutResponse(success=True)


@router.post(
    "/auth/bot-login",
    summary="Record a bot-confirmed login",
    description="Internal endpoint for the bot integration. Requires the X-Bot-Secret header.",
    operation_id="botLogin",
    responses={
        200: {"description": "Session created or reused"},
        403: {"model": ErrorResponse, "description": "Caller is not the bot integration"},
        500: {"model": ErrorResponse, "description": "Bot login not configured"},
    },
)
async def bot_login(request: BotLogin, app: AppDep, bot_secret: BotSecretDep) -> AuthResult:
    return await app.bot_login(bot_secret, request)


@router.get(
    "/auth/check",
    summary="Poll a correlation token",
    description="Report whether the bot login for this token has completed. Never changes state.",
    operation_id="checkToken",
    response_model_exclude_none=True,
    responses={
        200: {"description": "Token status"},
        400: {"model": ErrorResponse, "description": "Missing token"},
    },
)
async def check_token(app: AppDep, token: str | None = Query(None, description="Correlation token")) -> TokenCheckResult:
    if not token:
        raise ValidationError("Missing token")
    return await app.check_token(token)
