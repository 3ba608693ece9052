"""Auth error taxonomy.

Learn: Services raise these; the API layer renders them as structured
JSON (status/code/message) via the handlers in passgate.api.errors.
Each class pins its HTTP status and stable error code, so callers never
build status codes by hand.

Login, refresh and logout failures all collapse into Unauthorized with a
generic message. The only distinction clients get is TokenExpired, which
tells them to try a refresh instead of a full re-login.
"""

from typing import Any, Optional


class AuthError(Exception):
    """Base for errors surfaced to the HTTP boundary."""

    status_code: int = 400
    code: str = "BAD_REQUEST"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details


class BadRequest(AuthError):
    status_code = 400
    code = "BAD_REQUEST"


class Unauthorized(AuthError):
    status_code = 401
    code = "UNAUTHORIZED"


class TokenExpired(Unauthorized):
    code = "TOKEN_EXPIRED"


class Forbidden(AuthError):
    status_code = 403
    code = "FORBIDDEN"


class Conflict(AuthError):
    status_code = 409
    code = "CONFLICT"


class BadGateway(AuthError):
    status_code = 502
    code = "BAD_GATEWAY"


class ServiceUnavailable(AuthError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"
