"""Firebase ID token (verified-assertion) provider.

Learn: A Firebase ID token is an RS256 JWT signed by Google. Verifying it
needs no service-account secret, only the project id:
- signature against Google's published securetoken JWKS
- aud == project id, iss == https://securetoken.google.com/<project id>
- exp/iat present and valid, sub non-empty (sub is the Firebase uid)

PyJWKClient fetches and caches the key set. One provider instance is
built at startup and handed to the AuthService, so the key cache lives
for the life of the process instead of behind a module-level flag.
"""

import asyncio
import time
from typing import Optional

import jwt
import structlog

from passgate.errors import Unauthorized
from passgate.providers.base import AssertionProvider, FederatedProfile

logger = structlog.get_logger()

JWKS_URL = (
    "https://www.googleapis.com/service_accounts/v1/jwk/"
    "securetoken@system.gserviceaccount.com"
)
ISSUER_PREFIX = "https://securetoken.google.com/"


class FirebaseAssertionProvider(AssertionProvider):
    def __init__(
        self,
        project_id: str,
        *,
        jwks_client: Optional[jwt.PyJWKClient] = None,
        timeout: float = 10.0,
        leeway: int = 60,
    ):
        self.project_id = project_id
        self.leeway = leeway
        self.jwks_client = jwks_client or jwt.PyJWKClient(
            JWKS_URL, cache_keys=True, timeout=int(timeout)
        )

    @property
    def name(self) -> str:
        return "firebase"

    def login_id_hint(self, profile: FederatedProfile) -> str:
        if profile.email:
            return f"g_{profile.email.split('@')[0]}"
        return f"fb_{profile.subject[:8]}"

    async def resolve_identity(self, assertion: str) -> FederatedProfile:
        try:
            # PyJWKClient does blocking I/O on a key-cache miss
            claims = await asyncio.to_thread(self._verify, assertion)
        except jwt.PyJWTError as e:
            logger.info("firebase.token_rejected", error=type(e).__name__)
            raise Unauthorized("Invalid ID token")

        return FederatedProfile(
            provider=self.name,
            subject=claims["sub"],
            email=_verified_email(claims),
            display_name=claims.get("name") or None,
        )

    def _verify(self, token: str) -> dict:
        signing_key = self.jwks_client.get_signing_key_from_jwt(token)
        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=self.project_id,
            issuer=f"{ISSUER_PREFIX}{self.project_id}",
            leeway=self.leeway,
            options={"require": ["exp", "iat", "sub"]},
        )

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject or len(subject) > 128:
            raise jwt.InvalidTokenError("sub must be a non-empty string")
        auth_time = claims.get("auth_time")
        if auth_time is None:
            return claims
        if isinstance(auth_time, bool) or not isinstance(auth_time, (int, float)):
            raise jwt.InvalidTokenError("auth_time must be numeric")
        if auth_time > time.time() + self.leeway:
            raise jwt.ImmatureSignatureError("auth_time is in the future")
        return claims


def _verified_email(claims: dict) -> Optional[str]:
    """Only a verified email is trusted for the profile and the login_id hint."""
    email = claims.get("email")
    if not email or not isinstance(email, str) or claims.get("email_verified") is not True:
        return None
    return email
