"""
Repository for the per-user status projection.

The projection row doubles as the per-user lock: transitions read it with
SELECT ... FOR UPDATE so two concurrent requests for the same user cannot
both act on a stale status.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models import UserStatusDB, UserStatusTypeEnum
from ...services.status_projection import StatusSnapshot

logger = logging.getLogger(__name__)


class UserStatusRepository:
    """Repository for user status projection rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _insert(self):
        dialect = self.session.bind.dialect.name
        if dialect == "postgresql":
            return postgresql.insert(UserStatusDB)
        if dialect == "sqlite":
            return sqlite.insert(UserStatusDB)
        raise NotImplementedError(f"Status upsert not supported for dialect: {dialect}")

    async def ensure_exists(self, user_id: str, now: datetime) -> None:
        """Create an AVAILABLE row for the user unless one is already there."""
        stmt = self._insert().values(
            user_id=user_id,
            current_status=UserStatusTypeEnum.AVAILABLE,
            status_started_at=now,
            is_available=True,
        ).on_conflict_do_nothing(index_elements=["user_id"])
        await self.session.execute(stmt)

    async def lock_for_user(self, user_id: str, now: datetime) -> UserStatusDB:
        """Fetch the user's status row under a row lock, creating it on first use."""
        await self.ensure_exists(user_id, now)
        result = await self.session.execute(
            select(UserStatusDB)
            .where(UserStatusDB.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def write_snapshot(self, row: UserStatusDB, snapshot: StatusSnapshot) -> UserStatusDB:
        """Copy a computed snapshot onto the locked row."""
        row.current_status = snapshot.current_status
        row.current_task_id = snapshot.current_task_id
        row.status_started_at = snapshot.status_started_at
        row.status_text = snapshot.status_text
        row.is_available = snapshot.is_available
        row.auto_end_at = snapshot.auto_end_at
        await self.session.flush()

        logger.debug(
            f"Status for {snapshot.user_id}: {snapshot.current_status.value} "
            f"(task={snapshot.current_task_id})"
        )
        return row

    async def get_by_user(self, user_id: str) -> Optional[UserStatusDB]:
        """Status row with its current task loaded."""
        result = await self.session.execute(
            select(UserStatusDB)
            .options(selectinload(UserStatusDB.current_task))
            .where(UserStatusDB.user_id == user_id)
        )
        return result.scalar_one_or_none()
