"""
Repository for the append-only user event log.

All methods run on the caller's session so that an activity transition
(auto-stops, the new event, the projection write) commits as one unit.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models import UserEventDB, TaskDB, EventTypeEnum
from ...utils.datetime_utils import elapsed_ms

logger = logging.getLogger(__name__)


class UserEventRepository:
    """Repository for user activity events."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: str,
        event_type: EventTypeEnum,
        started_at: datetime,
        task_id: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> UserEventDB:
        """Append an event to the log."""
        event = UserEventDB(
            user_id=user_id,
            event_type=event_type,
            task_id=task_id,
            started_at=started_at,
            description=description,
            event_metadata=metadata,
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def get_latest_of_types(
        self,
        user_id: str,
        event_types: Iterable[EventTypeEnum],
    ) -> Optional[UserEventDB]:
        """Most recent event of any of the given types for a user."""
        result = await self.session.execute(
            select(UserEventDB)
            .where(
                UserEventDB.user_id == user_id,
                UserEventDB.event_type.in_(list(event_types)),
            )
            .order_by(UserEventDB.started_at.desc(), UserEventDB.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_open_start(
        self,
        user_id: str,
        start_type: EventTypeEnum,
        task_id: Optional[str] = None,
    ) -> Optional[UserEventDB]:
        """Latest start event of this type that has not been stamped as ended."""
        stmt = select(UserEventDB).where(
            UserEventDB.user_id == user_id,
            UserEventDB.event_type == start_type,
            UserEventDB.ended_at.is_(None),
        )
        if task_id is not None:
            stmt = stmt.where(UserEventDB.task_id == task_id)

        result = await self.session.execute(
            stmt.order_by(UserEventDB.started_at.desc(), UserEventDB.id.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def stamp_ended(self, event: UserEventDB, ended_at: datetime) -> UserEventDB:
        """Record when a start event was closed and how long it ran."""
        event.ended_at = ended_at
        event.duration_ms = elapsed_ms(event.started_at, ended_at)
        await self.session.flush()
        return event

    async def list_for_task(
        self,
        task_id: str,
        event_types: Iterable[EventTypeEnum],
        user_id: Optional[str] = None,
    ) -> List[UserEventDB]:
        """Events on a task in chronological order."""
        stmt = select(UserEventDB).where(
            UserEventDB.task_id == task_id,
            UserEventDB.event_type.in_(list(event_types)),
        )
        if user_id is not None:
            stmt = stmt.where(UserEventDB.user_id == user_id)

        result = await self.session.execute(
            stmt.order_by(UserEventDB.started_at.asc(), UserEventDB.id.asc())
        )
        return list(result.scalars().all())

    async def list_for_user(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        event_types: Optional[Iterable[EventTypeEnum]] = None,
        board_id: Optional[str] = None,
        limit: Optional[int] = None,
        newest_first: bool = False,
    ) -> List[UserEventDB]:
        """Events for a user with their task loaded, optionally windowed."""
        stmt = (
            select(UserEventDB)
            .options(selectinload(UserEventDB.task))
            .where(UserEventDB.user_id == user_id)
        )
        if start is not None:
            stmt = stmt.where(UserEventDB.started_at >= start)
        if end is not None:
            stmt = stmt.where(UserEventDB.started_at <= end)
        if event_types:
            stmt = stmt.where(UserEventDB.event_type.in_(list(event_types)))
        if board_id is not None:
            stmt = stmt.join(TaskDB, UserEventDB.task_id == TaskDB.id).where(TaskDB.board_id == board_id)

        if newest_first:
            stmt = stmt.order_by(UserEventDB.started_at.desc(), UserEventDB.id.desc())
        else:
            stmt = stmt.order_by(UserEventDB.started_at.asc(), UserEventDB.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())
