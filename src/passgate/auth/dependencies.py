"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current principal from the request.

get_current_principal is the capability every resource module consumes:
it turns "Authorization: Bearer <access token>" into a CurrentPrincipal
or raises Unauthorized / TokenExpired. Nothing else in the codebase
decodes access tokens. require_admin layers the role check on top.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request

from passgate.auth.jwt import TokenCodec, token_codec
from passgate.db.models import ROLE_ADMIN
from passgate.errors import Forbidden, Unauthorized
from passgate.providers import ProviderRegistry


@dataclass(frozen=True)
class CurrentPrincipal:
    """The authenticated principal making the request."""

    uid: str
    role: str


def get_token_codec() -> TokenCodec:
    return token_codec


def get_providers(request: Request) -> ProviderRegistry:
    """Provider registry built once in the app lifespan."""
    return request.app.state.providers


def _extract_bearer(authorization: str) -> str:
    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise Unauthorized("Invalid Authorization header")
    return token.strip()


async def get_current_principal_optional(
    authorization: Optional[str] = Header(None),
    codec: TokenCodec = Depends(get_token_codec),
) -> Optional[CurrentPrincipal]:
    """Extract current principal (optional — returns None if no auth).

    A present-but-bad header is still an error; only a missing header
    means anonymous.
    """
    if not authorization:
        return None
    claims = codec.verify_access(_extract_bearer(authorization))
    return CurrentPrincipal(uid=claims.uid, role=claims.role)


async def get_current_principal(
    principal: Optional[CurrentPrincipal] = Depends(get_current_principal_optional),
) -> CurrentPrincipal:
    """Extract current principal (required — 401 if no auth)."""
    if principal is None:
        raise Unauthorized("Missing access token")
    return principal


async def require_admin(
    principal: CurrentPrincipal = Depends(get_current_principal),
) -> CurrentPrincipal:
    """Admin-only routes: 401 without a token, 403 for any other role."""
    if principal.role != ROLE_ADMIN:
        raise Forbidden("Admin only")
    return principal
