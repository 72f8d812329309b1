"""Repository for the legacy per-task activity log."""

import json
import logging
from typing import Optional, Dict, Any, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import TaskActivityDB, EventTypeEnum

logger = logging.getLogger(__name__)


class TaskActivityRepository:
    """Writes task events into the task_activities audit view."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        task_id: str,
        user_id: str,
        action: str,
        event_type: EventTypeEnum,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TaskActivityDB:
        entry = TaskActivityDB(
            task_id=task_id,
            user_id=user_id,
            action=action,
            details=json.dumps({
                "eventType": event_type.value,
                "description": description,
                "metadata": metadata,
            }),
        )
        self.session.add(entry)
        await self.session.flush()
        logger.debug(f"Task log {action} on task {task_id} by {user_id}")
        return entry

    async def list_for_task(self, task_id: str) -> List[TaskActivityDB]:
        result = await self.session.execute(
            select(TaskActivityDB)
            .where(TaskActivityDB.task_id == task_id)
            .order_by(TaskActivityDB.id.asc())
        )
        return list(result.scalars().all())
