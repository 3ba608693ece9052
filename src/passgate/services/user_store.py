"""Principal lookups and creation.

Learn: Every "find a user who can act" query goes through active(), the
one place the soft-delete filter is written. Uniqueness checks
(login_id_taken) look at ALL rows: a soft-deleted account
keeps its login_id reserved so an identifier never silently changes owner.
"""

from typing import Optional

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from passgate.db.models import ROLE_USER, User, new_uid


class UserStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def active() -> Select:
        """SELECT over principals that are not soft-deleted."""
        return select(User).where(User.deleted_at.is_(None))

    async def get_active_by_login_id(self, login_id: str) -> Optional[User]:
        result = await self.db.execute(self.active().where(User.login_id == login_id))
        return result.scalars().first()

    async def get_active_by_uid(self, uid: str) -> Optional[User]:
        result = await self.db.execute(self.active().where(User.uid == uid))
        return result.scalars().first()

    async def login_id_taken(self, login_id: str) -> bool:
        """True if any row, deleted or not, holds this login_id."""
        result = await self.db.execute(
            select(User.uid).where(User.login_id == login_id).limit(1)
        )
        return result.first() is not None

    def add(
        self,
        *,
        login_id: str,
        password_hash: str,
        display_name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        role: str = ROLE_USER,
    ) -> User:
        """Stage a new principal on the session. Caller commits."""
        user = User(
            uid=new_uid(),
            login_id=login_id,
            password_hash=password_hash,
            display_name=display_name,
            email=email,
            phone=phone,
            is_email_public=True,
            is_phone_public=True,
            is_featured=False,
            role=role,
        )
        self.db.add(user)
        return user
