"""Repository for workspace membership reads."""

import logging
from typing import List, Tuple, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models import UserDB, UserStatusDB, WorkspaceMemberDB

logger = logging.getLogger(__name__)


class WorkspaceRepository:
    """Repository for workspaces and their members."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_member_statuses(
        self, workspace_id: str
    ) -> List[Tuple[UserDB, Optional[UserStatusDB]]]:
        """Every member of a workspace with their status row, if any."""
        result = await self.session.execute(
            select(UserDB, UserStatusDB)
            .join(WorkspaceMemberDB, WorkspaceMemberDB.user_id == UserDB.id)
            .outerjoin(UserStatusDB, UserStatusDB.user_id == UserDB.id)
            .options(selectinload(UserStatusDB.current_task))
            .where(WorkspaceMemberDB.workspace_id == workspace_id)
            .order_by(UserDB.name)
        )
        rows = [(user, status) for user, status in result.all()]
        logger.debug(f"Workspace {workspace_id}: {len(rows)} members")
        return rows
