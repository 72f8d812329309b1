"""
Activity service: the user status state machine.

A user is doing at most one thing at a time: working on a task, at
lunch, in a meeting, and so on. Starting something new first closes
whatever conflicts with it by appending synthesized stop/end events, then
appends the new event and rewrites the status projection. Every
transition runs in a single transaction under a row lock on the user's
status row.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, List, Callable, Union, Iterable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from ..database.connection import Database, get_database
from ..database.exceptions import DatabaseConstraintError, TransactionFailedError
from ..database.models import UserEventDB, EventTypeEnum
from ..database.repositories import (
    UserEventRepository,
    UserStatusRepository,
    TaskAssigneeRepository,
    TaskActivityRepository,
)
from ..database.repositories.task_assignees import HELPER_START, HELPER_STOP
from ..utils.datetime_utils import get_local_now
from .status_projection import (
    NON_TASK_ACTIVITIES,
    StatusSnapshot,
    apply_event,
    coerce_event_type,
    is_task_related_event,
    resolve_task_id,
    should_end_activity,
    should_stop_current_task,
    start_event_for,
    status_for_event,
    task_action_label,
)

logger = logging.getLogger(__name__)


class _Transition:
    """Repositories for one transaction."""

    def __init__(self, session: AsyncSession):
        self.events = UserEventRepository(session)
        self.statuses = UserStatusRepository(session)
        self.helpers = TaskAssigneeRepository(session)
        self.task_log = TaskActivityRepository(session)


class ActivityService:
    """Service for starting and ending user activities."""

    def __init__(self, db: Optional[Database] = None, clock: Optional[Callable[[], datetime]] = None):
        self.db = db or get_database()
        self._now = clock or get_local_now

    # ==================== TRANSITIONS ====================

    async def start_activity(
        self,
        user_id: str,
        event_type: Union[EventTypeEnum, str],
        task_id: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        auto_end_at: Optional[datetime] = None,
    ) -> UserEventDB:
        """
        Start a new activity for the user, closing anything that conflicts.

        Args:
            user_id: User changing state
            event_type: One of EventTypeEnum
            task_id: Task for task events (not validated here)
            description: Free-text note, also used as the status text
            metadata: Extra JSON stored on the event
            auto_end_at: When the caller expects the activity to end

        Returns:
            The created event

        Raises:
            UnmappedEventTypeError: event_type is not a known event
            DatabaseConstraintError: a reference (user, task) does not exist
            TransactionFailedError: the transaction was rolled back
        """
        event_type = coerce_event_type(event_type)
        status_for_event(event_type)

        async def run(tx: _Transition, now: datetime) -> UserEventDB:
            row = await tx.statuses.lock_for_user(user_id, now)
            current = StatusSnapshot.from_row(row)
            working_on = current.current_task_id if current.is_working else None
            target_task = resolve_task_id(working_on, event_type, task_id)

            await self._resolve_conflicts(tx, user_id, current, event_type, target_task, now)

            event = await tx.events.create(
                user_id=user_id,
                event_type=event_type,
                started_at=now,
                task_id=target_task,
                description=description,
                metadata=metadata,
            )
            await self._stamp_closed_start(tx, user_id, event_type, target_task, now)

            snapshot = apply_event(
                current, user_id, event_type, now,
                task_id=target_task,
                status_text=description,
                auto_end_at=auto_end_at,
            )
            await tx.statuses.write_snapshot(row, snapshot)

            if target_task and is_task_related_event(event_type):
                await tx.task_log.record(
                    target_task, user_id, task_action_label(event_type), event_type,
                    description=description, metadata=metadata,
                )

            if target_task and event_type == EventTypeEnum.TASK_START:
                await tx.helpers.update_helper_time(target_task, user_id, HELPER_START, now)
            elif target_task and event_type in (EventTypeEnum.TASK_STOP, EventTypeEnum.TASK_PAUSE):
                await tx.helpers.update_helper_time(target_task, user_id, HELPER_STOP, now)

            logger.info(
                f"User {user_id}: {event_type.value}"
                + (f" on task {target_task}" if target_task else "")
                + f" -> {snapshot.current_status.value}"
            )
            return event

        return await self._in_transaction(run, f"start {event_type.value} for {user_id}")

    async def end_current_activity(self, user_id: str, description: Optional[str] = None) -> UserEventDB:
        """
        End whatever the user is doing and mark them AVAILABLE.

        Safe to call repeatedly; a second call finds nothing to close and
        re-asserts AVAILABLE.
        """
        event_type = EventTypeEnum.AVAILABLE

        async def run(tx: _Transition, now: datetime) -> UserEventDB:
            row = await tx.statuses.lock_for_user(user_id, now)
            current = StatusSnapshot.from_row(row)

            await self._resolve_conflicts(tx, user_id, current, event_type, None, now)

            snapshot = apply_event(
                current, user_id, event_type, now,
                status_text=description or "Available",
            )
            await tx.statuses.write_snapshot(row, snapshot)

            event = await tx.events.create(
                user_id=user_id,
                event_type=event_type,
                started_at=now,
                description=description or "Set to available",
            )
            logger.info(f"User {user_id}: ended current activity -> AVAILABLE")
            return event

        return await self._in_transaction(run, f"end activity for {user_id}")

    async def _in_transaction(self, run, label: str):
        try:
            async with self.db.session() as session:
                return await run(_Transition(session), self._now())
        except IntegrityError as e:
            logger.error(f"Constraint violation during {label}: {e}", exc_info=True)
            raise DatabaseConstraintError(f"Constraint violation during {label}") from e
        except SQLAlchemyError as e:
            logger.error(f"Transaction failed during {label}: {e}", exc_info=True)
            raise TransactionFailedError(f"Transaction failed during {label}") from e

    # ==================== CONFLICT RESOLUTION ====================

    async def _resolve_conflicts(
        self,
        tx: _Transition,
        user_id: str,
        current: StatusSnapshot,
        new_event: EventTypeEnum,
        new_task_id: Optional[str],
        now: datetime,
    ) -> None:
        """Close the active task and any open non-task activity that ``new_event`` replaces."""
        if current.is_working and should_stop_current_task(current.current_task_id, new_event, new_task_id):
            await self._auto_stop_task(tx, user_id, current.current_task_id, new_event, now)

        for category, (start_type, end_type) in NON_TASK_ACTIVITIES.items():
            if new_event == end_type:
                # The incoming event closes this one itself
                continue

            latest = await tx.events.get_latest_of_types(user_id, (start_type, end_type))
            if latest is None or latest.event_type != start_type:
                continue
            if not should_end_activity(start_type, new_event):
                continue

            await self._auto_end_activity(tx, user_id, category, start_type, end_type, new_event, now)

    async def _auto_stop_task(
        self,
        tx: _Transition,
        user_id: str,
        task_id: str,
        triggered_by: EventTypeEnum,
        now: datetime,
    ) -> None:
        metadata = {
            "autoStopped": True,
            "reason": "Switched to another activity",
            "triggeredBy": triggered_by.value,
        }
        await tx.events.create(
            user_id=user_id,
            event_type=EventTypeEnum.TASK_STOP,
            started_at=now,
            task_id=task_id,
            description="Auto-stopped",
            metadata=metadata,
        )
        await tx.task_log.record(
            task_id, user_id, task_action_label(EventTypeEnum.TASK_STOP), EventTypeEnum.TASK_STOP,
            description="Auto-stopped", metadata=metadata,
        )
        await self._stamp_closed_start(tx, user_id, EventTypeEnum.TASK_STOP, task_id, now)
        await tx.helpers.update_helper_time(task_id, user_id, HELPER_STOP, now)
        logger.warning(f"Auto-stopped task {task_id} for {user_id} (new event {triggered_by.value})")

    async def _auto_end_activity(
        self,
        tx: _Transition,
        user_id: str,
        category: str,
        start_type: EventTypeEnum,
        end_type: EventTypeEnum,
        triggered_by: EventTypeEnum,
        now: datetime,
    ) -> None:
        await tx.events.create(
            user_id=user_id,
            event_type=end_type,
            started_at=now,
            description="Auto-ended",
            metadata={
                "autoEnded": True,
                "reason": "Started another activity",
                "triggeredBy": triggered_by.value,
            },
        )
        await self._stamp_closed_start(tx, user_id, end_type, None, now)
        logger.warning(f"Auto-ended {category} for {user_id} (new event {triggered_by.value})")

    async def _stamp_closed_start(
        self,
        tx: _Transition,
        user_id: str,
        closing_event: EventTypeEnum,
        task_id: Optional[str],
        now: datetime,
    ) -> None:
        """Stamp ended_at/duration on the start event that ``closing_event`` closes."""
        start_type = start_event_for(closing_event)
        if start_type is None:
            return
        if start_type == EventTypeEnum.TASK_START:
            if not task_id:
                return
        else:
            task_id = None

        open_start = await tx.events.find_open_start(user_id, start_type, task_id)
        if open_start is not None:
            await tx.events.stamp_ended(open_start, now)

    # ==================== READS ====================

    async def get_current_status(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Current status projection with a summary of the active task."""
        async with self.db.session() as session:
            row = await UserStatusRepository(session).get_by_user(user_id)
            if row is None:
                return None

            task = row.current_task
            return {
                "user_id": row.user_id,
                "current_status": row.current_status,
                "current_task_id": row.current_task_id,
                "status_started_at": row.status_started_at,
                "status_text": row.status_text,
                "is_available": row.is_available,
                "auto_end_at": row.auto_end_at,
                "current_task": {
                    "id": task.id,
                    "title": task.title,
                    "issue_key": task.issue_key,
                    "priority": task.priority,
                } if task else None,
            }

    async def get_activity_history(
        self,
        user_id: str,
        limit: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        event_types: Optional[Iterable[Union[EventTypeEnum, str]]] = None,
    ) -> List[UserEventDB]:
        """Recent events for a user, newest first."""
        types = [coerce_event_type(t) for t in event_types] if event_types else None
        async with self.db.session() as session:
            return await UserEventRepository(session).list_for_user(
                user_id,
                start=start_date,
                end=end_date,
                event_types=types,
                limit=limit or settings.activity_history_limit,
                newest_first=True,
            )


# Singleton
_activity_service: Optional[ActivityService] = None


def get_activity_service() -> ActivityService:
    """Get the activity service singleton."""
    global _activity_service
    if _activity_service is None:
        _activity_service = ActivityService()
    return _activity_service
