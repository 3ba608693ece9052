"""Event store — append-only audit log for auth activity.

Learn: Every session lifecycle transition (register, login, refresh,
revoke, identity link) appends an immutable row. Events are added to the
caller's session and flushed, never committed here — they land in the
same transaction as the change they describe, or not at all.

Token strings and password material are never written to events.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from passgate.db.models import AuthEvent


class EventStore:
    """Append-only event store backed by the auth_events table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        stream_id: str,
        event_type: str,
        data: dict,
    ) -> AuthEvent:
        """Append an event to a stream. Returns the created event."""
        event = AuthEvent(
            stream_id=stream_id,
            type=event_type,
            data=data,
        )
        self.db.add(event)
        await self.db.flush()  # get the auto-generated id
        return event

    async def read_stream(
        self,
        stream_id: str,
        after_id: int = 0,
        limit: int = 100,
    ) -> list[AuthEvent]:
        """Read events for a specific stream, optionally after a given position."""
        result = await self.db.execute(
            select(AuthEvent)
            .where(AuthEvent.stream_id == stream_id, AuthEvent.id > after_id)
            .order_by(AuthEvent.id)
            .limit(limit)
        )
        return list(result.scalars().all())


def user_stream(uid: str) -> str:
    return f"user:{uid}"
