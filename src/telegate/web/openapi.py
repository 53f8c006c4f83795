from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field

# Endpoints reachable without a session
PUBLIC_ENDPOINTS = {
    ("POST", "/api/v1/auth/login"),
    ("GET", "/api/v1/auth/callback"),
    ("GET", "/api/v1/auth/check"),
    ("GET", "/health"),
}


def set_custom_openapi(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="Telegate API",
            version="0.1.0",
            summary="Telegram login verification and session service",
            routes=app.routes,
        )

        components = openapi_schema.setdefault("components", {})
        components["securitySchemes"] = {
            "BearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "description": "Session id as bearer token (preferred)",
            },
            "SessionIdHeader": {
                "type": "apiKey",
                "in": "header",
                "name": "X-Session-Id",
                "description": "Session id header",
            },
            "SessionCookie": {
                "type": "apiKey",
                "in": "cookie",
                "name": "session_id",
                "description": "Session id stored in cookie by /auth/login",
            },
            "BotSecret": {
                "type": "apiKey",
                "in": "header",
                "name": "X-Bot-Secret",
                "description": "Shared secret of the bot integration",
            },
        }

        for path, path_item in openapi_schema["paths"].items():
            for method, operation in path_item.items():
                if (method.upper(), path) in PUBLIC_ENDPOINTS:
                    operation["security"] = []

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error type")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Invalid authentication data", "type": "authentication_error"},
                {"message": "Session not found", "type": "not_found"},
                {"message": "Telegram authentication not configured", "type": "not_configured"},
            ]
        }
    }
