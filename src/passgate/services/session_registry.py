"""Session registry and OAuth state store — Redis-backed single-use keys.

Learn: Two kinds of short-lived server state, both in Redis:

    refresh:{jti}                   → uid   (TTL = refresh token lifetime)
    oauth_state:{provider}:{state}  → "1"   (TTL = a few minutes)

The registry is the authority on whether a refresh token is still live.
A correctly signed token whose jti is missing here is revoked.

Consumption uses GETDEL, which reads and deletes in one atomic step. Two
concurrent refreshes with the same token can't both see the key: one
gets the uid, the other gets None. The same holds for OAuth states, so a
state can back at most one callback.
"""

from typing import Optional

import redis.asyncio as aioredis

REFRESH_PREFIX = "refresh"
OAUTH_STATE_PREFIX = "oauth_state"


class SessionRegistry:
    """Tracks live refresh tokens by jti."""

    def __init__(self, redis: aioredis.Redis):
        self.redis = redis

    @staticmethod
    def _key(jti: str) -> str:
        return f"{REFRESH_PREFIX}:{jti}"

    async def register(self, jti: str, uid: str, ttl_seconds: int) -> None:
        """Record a freshly issued refresh token."""
        await self.redis.set(self._key(jti), uid, ex=ttl_seconds)

    async def consume(self, jti: str) -> Optional[str]:
        """Atomically fetch and delete a jti. Returns the stored uid or None."""
        return await self.redis.getdel(self._key(jti))

    async def revoke(self, jti: str) -> None:
        """Delete a jti. Deleting a missing key is fine."""
        await self.redis.delete(self._key(jti))


class OAuthStateStore:
    """Single-use anti-CSRF nonces for authorization-code flows."""

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int = 600):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(provider: str, state: str) -> str:
        return f"{OAUTH_STATE_PREFIX}:{provider}:{state}"

    async def save(self, provider: str, state: str) -> None:
        await self.redis.set(self._key(provider, state), "1", ex=self.ttl_seconds)

    async def consume(self, provider: str, state: str) -> bool:
        """True if the state existed. It is gone afterwards either way."""
        return await self.redis.getdel(self._key(provider, state)) is not None
