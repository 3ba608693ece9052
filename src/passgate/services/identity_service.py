"""Identity linker — federated account → local principal mapping.

Learn: A link is keyed by (provider, provider_user_id) and is created
exactly once, the first time that federated account signs in. Re-logins
only read it. The unique constraint on the table is what actually
guarantees "one link per provider account" under concurrency; this
class never updates an existing row.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from passgate.db.models import AuthIdentity, new_uid


class IdentityLinker:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find(self, provider: str, provider_user_id: str) -> Optional[AuthIdentity]:
        result = await self.db.execute(
            select(AuthIdentity).where(
                AuthIdentity.provider == provider,
                AuthIdentity.provider_user_id == provider_user_id,
            )
        )
        return result.scalars().first()

    async def list_for_user(self, user_uid: str) -> list[AuthIdentity]:
        result = await self.db.execute(
            select(AuthIdentity)
            .where(AuthIdentity.user_uid == user_uid)
            .order_by(AuthIdentity.provider)
        )
        return list(result.scalars().all())

    def link(
        self,
        *,
        provider: str,
        provider_user_id: str,
        user_uid: str,
        email: Optional[str] = None,
        username: Optional[str] = None,
    ) -> AuthIdentity:
        """Stage a new link on the session. Caller commits."""
        identity = AuthIdentity(
            id=new_uid(),
            provider=provider,
            provider_user_id=provider_user_id,
            user_uid=user_uid,
            email=email,
            username=username,
        )
        self.db.add(identity)
        return identity
