"""Initial auth schema: users, auth_identities, auth_events

Learn: The two unique constraints here are what make registration and
federated linking safe under concurrency: uq users.login_id and
uq auth_identities(provider, provider_user_id). Application-level
"does it exist?" checks only make collisions rarer.

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-18 09:12:41.204117
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("uid", sa.String(36), primary_key=True),
        sa.Column("login_id", sa.String(50), nullable=False),
        sa.Column("password_hash", sa.String(100), nullable=False),
        sa.Column("display_name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("is_email_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_phone_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("role", sa.String(10), nullable=False, server_default="USER"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("login_id", name="uq_users_login_id"),
    )
    op.create_index("ix_users_display_name", "users", ["display_name"])
    op.create_index("ix_users_deleted_at", "users", ["deleted_at"])

    op.create_table(
        "auth_identities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("provider_user_id", sa.String(128), nullable=False),
        sa.Column("user_uid", sa.String(36), sa.ForeignKey("users.uid"), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("username", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "provider", "provider_user_id", name="uq_auth_identities_provider_user"
        ),
    )
    op.create_index("ix_auth_identities_user_uid", "auth_identities", ["user_uid"])

    op.create_table(
        "auth_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("stream_id", sa.String(100), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column(
            "data",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_auth_events_stream", "auth_events", ["stream_id", "id"])


def downgrade() -> None:
    op.drop_index("ix_auth_events_stream", table_name="auth_events")
    op.drop_table("auth_events")
    op.drop_index("ix_auth_identities_user_uid", table_name="auth_identities")
    op.drop_table("auth_identities")
    op.drop_index("ix_users_deleted_at", table_name="users")
    op.drop_index("ix_users_display_name", table_name="users")
    op.drop_table("users")
