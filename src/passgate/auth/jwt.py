"""JWT token creation and verification.

Learn: Two token kinds, each signed with its own secret:
- Access token: short-lived (minutes), stateless, carries {uid, role}
- Refresh token: long-lived (days), carries a jti that must also be
  present in the Redis session registry to be honoured

The `kind` claim is checked on every verify so a refresh token can never
be presented where an access token is expected (and vice versa). Using
separate secrets makes cross-use fail at the signature step too.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from passgate.config import Settings, settings
from passgate.errors import TokenExpired, Unauthorized

ACCESS_KIND = "access"
REFRESH_KIND = "refresh"


@dataclass(frozen=True)
class AccessClaims:
    uid: str
    role: str


@dataclass(frozen=True)
class RefreshClaims:
    uid: str
    role: str
    jti: str


class TokenCodec:
    """Signs and verifies access/refresh tokens. Pure — no revocation state."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        *,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=14),
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, cfg: Settings) -> "TokenCodec":
        return cls(
            cfg.jwt_access_secret,
            cfg.jwt_refresh_secret,
            algorithm=cfg.jwt_algorithm,
            access_ttl=timedelta(minutes=cfg.access_token_expire_minutes),
            refresh_ttl=timedelta(days=cfg.refresh_token_expire_days),
        )

    # ─── Issue ────────────────────────────────────────────

    def issue_access(
        self, uid: str, role: str, ttl: Optional[timedelta] = None
    ) -> str:
        """Create a signed access token."""
        payload = {"uid": uid, "role": role, "kind": ACCESS_KIND}
        ttl = self.access_ttl if ttl is None else ttl
        return self._encode(payload, self.access_secret, ttl)

    def issue_refresh(
        self, uid: str, role: str, jti: str, ttl: Optional[timedelta] = None
    ) -> str:
        """Create a signed refresh token bound to a registry jti."""
        payload = {"uid": uid, "role": role, "jti": jti, "kind": REFRESH_KIND}
        ttl = self.refresh_ttl if ttl is None else ttl
        return self._encode(payload, self.refresh_secret, ttl)

    def _encode(self, payload: dict, secret: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {**payload, "iat": now, "exp": now + ttl}
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    # ─── Verify ───────────────────────────────────────────

    def verify_access(self, token: str) -> AccessClaims:
        """Verify an access token.

        Raises TokenExpired if exp has elapsed, Unauthorized for anything
        else (bad signature, malformed, wrong kind).
        """
        payload = self._decode(token, self.access_secret, "Access")
        if payload.get("kind") != ACCESS_KIND or not _has_identity(payload):
            raise Unauthorized("Invalid access token")
        return AccessClaims(uid=payload["uid"], role=payload["role"])

    def verify_refresh(self, token: str) -> RefreshClaims:
        """Verify a refresh token's signature, expiry, kind and jti.

        This does NOT check revocation — callers must consult the
        session registry.
        """
        payload = self._decode(token, self.refresh_secret, "Refresh")
        if (
            payload.get("kind") != REFRESH_KIND
            or not _has_identity(payload)
            or not isinstance(payload.get("jti"), str)
            or not payload["jti"]
        ):
            raise Unauthorized("Invalid refresh token")
        return RefreshClaims(
            uid=payload["uid"], role=payload["role"], jti=payload["jti"]
        )

    def _decode(self, token: str, secret: str, label: str) -> dict:
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired(f"{label} token expired")
        except jwt.InvalidTokenError:
            raise Unauthorized(f"Invalid {label.lower()} token")


def _has_identity(payload: dict) -> bool:
    return isinstance(payload.get("uid"), str) and isinstance(payload.get("role"), str)


# Default codec built from env settings — shared by the API layer
token_codec = TokenCodec.from_settings(settings)
