"""Auth service — the session orchestrator.

Learn: Every way of getting a session ends in the same place,
_issue_tokens(), which mints an access/refresh pair and records the
refresh token's jti in Redis. The flows differ only in how they decide
WHICH principal gets the tokens:

- register       → new local principal
- login          → local principal + bcrypt check
- refresh        → consume the old jti (single use), reload the principal
- oauth callback → consume the state nonce, ask the provider who this is
- assertion      → ask the provider to verify a signed assertion

Refresh token validity = signature/expiry/kind check (TokenCodec) AND
jti still present in the SessionRegistry. Neither alone is enough: the
registry has no role/expiry, the token can't express revocation.

Failure messages for login/refresh/logout are generic.
Whether the account exists, the password was wrong, or the token was
revoked all look the same from outside.
"""

import secrets
import uuid
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from passgate.auth.jwt import TokenCodec
from passgate.auth.password import (
    burn_verification,
    hash_password,
    unusable_password_hash,
    verify_password,
)
from passgate.db.models import User
from passgate.errors import BadRequest, Conflict, ServiceUnavailable, Unauthorized
from passgate.events.store import EventStore, user_stream
from passgate.events.types import (
    FEDERATED_LOGGED_IN,
    IDENTITY_LINKED,
    SESSION_REFRESHED,
    SESSION_REVOKED,
    USER_LOGGED_IN,
    USER_REGISTERED,
)
from passgate.providers import (
    FederatedProfile,
    IdentityProvider,
    ProviderRegistry,
    normalize_login_id,
)
from passgate.schemas.auth import OAuthStartResponse, TokenResponse, UserSummary
from passgate.services.identity_service import IdentityLinker
from passgate.services.session_registry import OAuthStateStore, SessionRegistry
from passgate.services.user_store import UserStore

logger = structlog.get_logger()

LOGIN_ID_MAX = 50
INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH = "Invalid or revoked refresh token"
LINK_ATTEMPTS = 3


class AuthService:
    """Register, login, refresh, logout and federated sign-in."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        sessions: SessionRegistry,
        oauth_states: OAuthStateStore,
        codec: TokenCodec,
        providers: ProviderRegistry,
        login_id_max_attempts: int = 50,
    ):
        self.db = db
        self.users = UserStore(db)
        self.identities = IdentityLinker(db)
        self.events = EventStore(db)
        self.sessions = sessions
        self.oauth_states = oauth_states
        self.codec = codec
        self.providers = providers
        self.login_id_max_attempts = login_id_max_attempts

    # ─── Local accounts ───────────────────────────────────

    async def register(
        self,
        *,
        login_id: str,
        password: str,
        display_name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> TokenResponse:
        """Create a local principal and sign it in.

        Soft-deleted accounts keep their login_id: it is never reissued.
        """
        if await self.users.login_id_taken(login_id):
            raise Conflict("login_id already exists")

        user = self.users.add(
            login_id=login_id,
            password_hash=await hash_password(password),
            display_name=display_name,
            email=email,
            phone=phone,
        )
        try:
            await self.events.append(
                user_stream(user.uid), USER_REGISTERED, {"login_id": login_id}
            )
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same login_id
            await self.db.rollback()
            raise Conflict("login_id already exists")

        logger.info("auth.registered", uid=user.uid)
        return await self._issue_tokens(user)

    async def login(self, *, login_id: str, password: str) -> TokenResponse:
        user = await self.users.get_active_by_login_id(login_id)
        if user is None:
            await burn_verification(password)
            logger.info("auth.login_rejected")
            raise Unauthorized(INVALID_CREDENTIALS)

        if not await verify_password(password, user.password_hash):
            logger.info("auth.login_rejected")
            raise Unauthorized(INVALID_CREDENTIALS)

        tokens = await self._issue_tokens(user)
        await self.events.append(user_stream(user.uid), USER_LOGGED_IN, {})
        await self.db.commit()
        logger.info("auth.login_succeeded", uid=user.uid)
        return tokens

    # ─── Refresh rotation ─────────────────────────────────

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """Trade a refresh token for a new pair. Each token works once.

        The jti is consumed (GETDEL) before anything else happens, so a
        second presentation — concurrent or later — finds nothing.
        """
        claims = self.codec.verify_refresh(refresh_token)

        stored_uid = await self.sessions.consume(claims.jti)
        if stored_uid is None or stored_uid != claims.uid:
            logger.info("auth.refresh_rejected", reason="not_registered")
            raise Unauthorized(INVALID_REFRESH)

        user = await self.users.get_active_by_uid(claims.uid)
        if user is None:
            logger.info("auth.refresh_rejected", reason="principal_inactive")
            raise Unauthorized(INVALID_REFRESH)

        tokens = await self._issue_tokens(user)
        await self.events.append(user_stream(user.uid), SESSION_REFRESHED, {})
        await self.db.commit()
        logger.info("auth.refreshed", uid=user.uid)
        return tokens

    async def logout(self, *, uid: str, refresh_token: str) -> dict:
        """Revoke a refresh token owned by the caller. Idempotent.

        The refresh token must belong to the authenticated principal —
        holding someone else's refresh token plus your own access token
        doesn't let you end their session.
        """
        claims = self.codec.verify_refresh(refresh_token)
        if claims.uid != uid:
            logger.warning("auth.logout_uid_mismatch", uid=uid)
            raise Unauthorized(INVALID_REFRESH)

        await self.sessions.revoke(claims.jti)
        await self.events.append(user_stream(uid), SESSION_REVOKED, {})
        await self.db.commit()
        logger.info("auth.logged_out", uid=uid)
        return {"ok": True}

    # ─── OAuth (authorization code) ───────────────────────

    async def oauth_start(self, provider_name: str) -> OAuthStartResponse:
        provider = self.providers.oauth(provider_name)
        state = secrets.token_urlsafe(32)
        await self.oauth_states.save(provider.name, state)
        return OAuthStartResponse(
            provider=provider.name, url=provider.authorize_url(state)
        )

    async def oauth_callback(
        self, provider_name: str, *, code: Optional[str], state: Optional[str]
    ) -> TokenResponse:
        """Finish an authorization-code flow.

        The state nonce is consumed before talking to the provider. A
        callback that fails later still burns its state; the user has to
        start over, but a replayed URL can never succeed.
        """
        provider = self.providers.oauth(provider_name)
        if not code:
            raise BadRequest("Missing code")
        if not state:
            raise BadRequest("Missing state")

        if not await self.oauth_states.consume(provider.name, state):
            logger.warning("auth.oauth_state_rejected", provider=provider.name)
            raise Unauthorized("Invalid state")

        profile = await provider.resolve_identity(code)
        return await self._federated_sign_in(provider, profile)

    # ─── Verified assertion ───────────────────────────────

    async def assertion_login(self, provider_name: str, assertion: str) -> TokenResponse:
        provider = self.providers.assertion(provider_name)
        profile = await provider.resolve_identity(assertion)
        return await self._federated_sign_in(provider, profile)

    # ─── Shared federated path ────────────────────────────

    async def _federated_sign_in(
        self, provider: IdentityProvider, profile: FederatedProfile
    ) -> TokenResponse:
        user, created = await self._resolve_federated_user(provider, profile)
        tokens = await self._issue_tokens(user)
        await self.events.append(
            user_stream(user.uid),
            FEDERATED_LOGGED_IN,
            {"provider": provider.name, "new_account": created},
        )
        await self.db.commit()
        logger.info(
            "auth.federated_login", uid=user.uid, provider=provider.name, new_account=created
        )
        return tokens

    async def _resolve_federated_user(
        self, provider: IdentityProvider, profile: FederatedProfile
    ) -> tuple[User, bool]:
        """Find the principal linked to this federated account, or create one.

        Returns (user, created). A unique violation on commit means another
        request linked this account first, or took the allocated login_id.
        The first case returns the winner. The second re-allocates and
        tries again, up to LINK_ATTEMPTS times.
        """
        existing = await self._linked_user(profile)
        if existing is not None:
            return existing, False

        password_hash = await unusable_password_hash()
        for attempt in range(1, LINK_ATTEMPTS + 1):
            login_id = await self._allocate_login_id(provider.login_id_hint(profile))
            user = self.users.add(
                login_id=login_id,
                password_hash=password_hash,
                display_name=provider.display_name_for(profile, login_id),
                email=profile.email,
            )
            self.identities.link(
                provider=profile.provider,
                provider_user_id=profile.subject,
                user_uid=user.uid,
                email=profile.email,
                username=profile.username,
            )
            try:
                await self.events.append(
                    user_stream(user.uid),
                    IDENTITY_LINKED,
                    {"provider": profile.provider, "login_id": login_id},
                )
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                existing = await self._linked_user(profile)
                if existing is not None:
                    return existing, False
                logger.warning(
                    "auth.login_id_race", login_id=login_id, attempt=attempt
                )
                continue

            logger.info("auth.identity_linked", uid=user.uid, provider=profile.provider)
            return user, True

        raise Conflict("Could not link federated identity")

    async def _linked_user(self, profile: FederatedProfile) -> Optional[User]:
        link = await self.identities.find(profile.provider, profile.subject)
        if link is None:
            return None
        user = await self.users.get_active_by_uid(link.user_uid)
        if user is None:
            # Link points at a missing or soft-deleted principal
            logger.error(
                "auth.identity_mapping_broken",
                provider=profile.provider,
                user_uid=link.user_uid,
            )
            raise Conflict("Identity mapping broken", code="STATE_CONFLICT")
        return user

    async def _allocate_login_id(self, hint: str) -> str:
        """Probe base, base_1, base_2, ... for an unused login_id.

        Best-effort only: the unique index on users.login_id is what
        actually prevents duplicates.
        """
        base = normalize_login_id(hint) or "user"
        candidate = base
        for attempt in range(self.login_id_max_attempts):
            if not await self.users.login_id_taken(candidate):
                return candidate
            candidate = f"{base}_{attempt + 1}"[:LOGIN_ID_MAX]

        logger.error("auth.login_id_exhausted", base=base)
        raise ServiceUnavailable("Cannot allocate login_id")

    # ─── Token issuance ───────────────────────────────────

    async def _issue_tokens(self, user: User) -> TokenResponse:
        """Mint an access/refresh pair and register the refresh jti."""
        jti = str(uuid.uuid4())
        access_token = self.codec.issue_access(user.uid, user.role)
        refresh_token = self.codec.issue_refresh(user.uid, user.role, jti)

        await self.sessions.register(
            jti, user.uid, int(self.codec.refresh_ttl.total_seconds())
        )

        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(self.codec.access_ttl.total_seconds()),
            user=UserSummary.model_validate(user),
        )
