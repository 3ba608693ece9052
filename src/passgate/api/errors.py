"""Exception handlers — structured JSON errors.

Learn: Services raise AuthError subclasses; these handlers turn them into

    {"timestamp", "path", "status", "code", "message", "details"?}

so every failure — ours, request validation, or an unexpected crash —
has the same shape. 401s also carry WWW-Authenticate: Bearer.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from passgate.errors import AuthError

logger = structlog.get_logger()


def error_response(
    request: Request,
    status: int,
    code: str,
    message: str,
    details: Optional[Any] = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "status": status,
        "code": code,
        "message": message,
    }
    if details is not None:
        body["details"] = details
    headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
    return JSONResponse(status_code=status, content=body, headers=headers)


_HTTP_CODES = {
    404: "RESOURCE_NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _validation_details(exc: RequestValidationError) -> dict[str, str]:
    """Map each failing field ("body.login_id") to its message."""
    out: dict[str, str] = {}
    for err in exc.errors():
        key = ".".join(str(part) for part in err.get("loc", ())) or "_"
        out[key] = err.get("msg", "invalid")
    return out


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "http.auth_error",
            path=request.url.path,
            status=exc.status_code,
            code=exc.code,
        )
        return error_response(
            request, exc.status_code, exc.code, exc.message, exc.details
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
        return error_response(request, exc.status_code, code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return error_response(
            request, 422, "VALIDATION_FAILED", "Validation failed",
            _validation_details(exc),
        )

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception):
        logger.exception(
            "http.unhandled_exception",
            path=request.url.path,
            error_type=type(exc).__name__,
        )
        return error_response(
            request, 500, "INTERNAL_SERVER_ERROR", "Internal server error"
        )
