"""
Repository for task assignees and helper time accumulation.

Helpers are people working on a task they do not own. Their time is
accumulated on the (task, user) row between a start and the next stop.
The primary assignee's time comes from the event log instead.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import TaskDB, TaskAssigneeDB
from ...utils.datetime_utils import elapsed_ms

logger = logging.getLogger(__name__)

HELPER_START = "start"
HELPER_STOP = "stop"


class TaskAssigneeRepository:
    """Repository for task assignee rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, task_id: str, user_id: str) -> Optional[TaskAssigneeDB]:
        result = await self.session.execute(
            select(TaskAssigneeDB).where(
                TaskAssigneeDB.task_id == task_id,
                TaskAssigneeDB.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def _primary_assignee_id(self, task_id: str) -> Optional[str]:
        result = await self.session.execute(
            select(TaskDB.assignee_id).where(TaskDB.id == task_id)
        )
        return result.scalar_one_or_none()

    async def update_helper_time(
        self,
        task_id: str,
        user_id: str,
        action: str,
        now: datetime,
    ) -> Optional[TaskAssigneeDB]:
        """
        Start or settle a helper's clock on a task.

        Args:
            task_id: Task being worked on
            user_id: User doing the work
            action: "start" stamps last_worked_at; "stop" adds the elapsed
                milliseconds since last_worked_at to total_time_worked
            now: Transition time

        Returns:
            The updated row, or None when the user is the primary assignee
            or not a registered helper.
        """
        if action not in (HELPER_START, HELPER_STOP):
            raise ValueError(f"Unknown helper time action: {action}")

        if await self._primary_assignee_id(task_id) == user_id:
            return None

        helper = await self.get(task_id, user_id)
        if helper is None:
            return None

        if action == HELPER_START:
            helper.last_worked_at = now
        elif helper.last_worked_at is not None:
            worked = elapsed_ms(helper.last_worked_at, now)
            helper.total_time_worked = (helper.total_time_worked or 0) + worked
            helper.last_worked_at = now
            logger.info(f"Helper {user_id} on task {task_id}: +{worked}ms (total {helper.total_time_worked}ms)")

        await self.session.flush()
        return helper
