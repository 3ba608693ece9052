"""Auth API — local accounts, token rotation, federated sign-in.

Learn: Routes for the whole session lifecycle:
- POST /auth/register → create a local account → tokens (201)
- POST /auth/login → login_id/password → tokens
- POST /auth/refresh → refresh token → NEW access + refresh tokens
  (the old refresh token stops working)
- POST /auth/logout → revoke one of your own refresh tokens
- GET /auth/oauth/{provider} → authorize URL with a fresh state
- GET /auth/oauth/{provider}/callback → code + state → tokens
- POST /auth/firebase → Firebase ID token → tokens
- GET /auth/me → current principal's profile

Handlers stay thin: all decisions live in AuthService, all failures are
AuthError subclasses rendered by api.errors.
"""

from typing import Optional

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from passgate.auth.dependencies import (
    CurrentPrincipal,
    get_current_principal,
    get_providers,
    get_token_codec,
)
from passgate.auth.jwt import TokenCodec
from passgate.cache import get_redis
from passgate.config import settings
from passgate.db.engine import get_db
from passgate.errors import Unauthorized
from passgate.providers import ProviderRegistry
from passgate.schemas.auth import (
    AssertionLoginRequest,
    LoginRequest,
    LogoutRequest,
    LogoutResponse,
    MeResponse,
    OAuthStartResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from passgate.services.auth_service import AuthService
from passgate.services.identity_service import IdentityLinker
from passgate.services.session_registry import OAuthStateStore, SessionRegistry
from passgate.services.user_store import UserStore

router = APIRouter(prefix="/auth")


def _svc(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    codec: TokenCodec = Depends(get_token_codec),
    providers: ProviderRegistry = Depends(get_providers),
) -> AuthService:
    return AuthService(
        db,
        sessions=SessionRegistry(redis),
        oauth_states=OAuthStateStore(redis, ttl_seconds=settings.oauth_state_ttl_seconds),
        codec=codec,
        providers=providers,
        login_id_max_attempts=settings.login_id_max_attempts,
    )


# ─── Local accounts ─────────────────────────────────────


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(body: RegisterRequest, svc: AuthService = Depends(_svc)):
    """Create a local account and return a token pair."""
    return await svc.register(
        login_id=body.login_id,
        password=body.password,
        display_name=body.display_name,
        email=body.email,
        phone=body.phone,
    )


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, svc: AuthService = Depends(_svc)):
    """Login with login_id and password → JWT tokens."""
    return await svc.login(login_id=body.login_id, password=body.password)


# ─── Refresh / logout ───────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, svc: AuthService = Depends(_svc)):
    """Rotate a refresh token. Each refresh token can be used once."""
    return await svc.refresh(body.refresh_token)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    body: LogoutRequest,
    principal: CurrentPrincipal = Depends(get_current_principal),
    svc: AuthService = Depends(_svc),
):
    """Revoke a refresh token belonging to the caller."""
    return await svc.logout(uid=principal.uid, refresh_token=body.refresh_token)


# ─── Federated sign-in ──────────────────────────────────


@router.get("/oauth/{provider}", response_model=OAuthStartResponse)
async def oauth_start(provider: str, svc: AuthService = Depends(_svc)):
    """Begin an authorization-code flow. The URL embeds a single-use state."""
    return await svc.oauth_start(provider)


@router.get("/oauth/{provider}/callback", response_model=TokenResponse)
async def oauth_callback(
    provider: str,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    svc: AuthService = Depends(_svc),
):
    """Provider redirect target: ?code=...&state=..."""
    return await svc.oauth_callback(provider, code=code, state=state)


@router.post("/firebase", response_model=TokenResponse)
async def firebase_login(body: AssertionLoginRequest, svc: AuthService = Depends(_svc)):
    """Sign in with a Firebase ID token obtained client-side."""
    return await svc.assertion_login("firebase", body.id_token)


# ─── Current principal ──────────────────────────────────


@router.get("/me", response_model=MeResponse)
async def get_me(
    principal: CurrentPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated principal's profile and linked providers."""
    user = await UserStore(db).get_active_by_uid(principal.uid)
    if user is None:
        raise Unauthorized("Principal no longer active")

    links = await IdentityLinker(db).list_for_user(user.uid)
    return MeResponse(
        uid=user.uid,
        login_id=user.login_id,
        display_name=user.display_name,
        email=user.email,
        role=user.role,
        is_featured=user.is_featured,
        created_at=user.created_at,
        providers=[link.provider for link in links],
    )
