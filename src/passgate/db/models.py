"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Constraints and indexes defined here.
Alembic migrations under db/migrations mirror these models.

Key concepts:
- Opaque string uids (UUID4 text) — portable across Postgres and SQLite
- Soft delete via deleted_at — principals are never hard-deleted
- Uniqueness enforced by the database, not by read-then-write checks
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"

# JSONB on Postgres, plain JSON elsewhere (tests run on SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uid() -> str:
    return str(uuid.uuid4())


class User(Base):
    """A principal that can authenticate.

    Learn: uid is the stable internal identifier embedded in tokens;
    login_id is the human-chosen handle used for local login. Both are
    unique. A soft-deleted row keeps its login_id reserved forever.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("login_id", name="uq_users_login_id"),
    )

    uid: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uid)
    login_id: Mapped[str] = mapped_column(String(50), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    display_name: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    is_email_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_phone_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    role: Mapped[str] = mapped_column(String(10), default=ROLE_USER, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )


class AuthIdentity(Base):
    """Link between a federated account and a local principal.

    Learn: (provider, provider_user_id) is unique — a GitHub account maps
    to exactly one principal. One principal may hold links for several
    providers. Rows are written once at first federated login and never
    updated; email/username are a snapshot for auditing.
    """

    __tablename__ = "auth_identities"
    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_user_id", name="uq_auth_identities_provider_user"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uid)
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    provider_user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    user_uid: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.uid"), nullable=False, index=True
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class AuthEvent(Base):
    """Append-only audit log of session lifecycle transitions.

    Learn: stream_id groups events per principal ("user:{uid}") so the
    history of one account reads as a single ordered stream.
    """

    __tablename__ = "auth_events"
    __table_args__ = (
        Index("ix_auth_events_stream", "stream_id", "id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stream_id: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
