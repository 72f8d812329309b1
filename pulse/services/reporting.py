"""
Reporting over the activity event log.

The replay functions at the top are pure: they take events in
chronological order and return totals. ``ReportingService`` loads the
events and calls them. Nothing here writes to the database.

Unclosed starts are handled differently on purpose:
- task time spent counts completed work only, so a trailing start is dropped
- the daily breakdown is a live view, so an open bucket is credited up to now
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import datetime, date
from typing import Optional, Dict, Any, List, Callable, Sequence

from config import settings
from ..database.connection import Database, get_database
from ..database.models import EventTypeEnum
from ..database.repositories import UserEventRepository, WorkspaceRepository
from ..utils.datetime_utils import (
    get_local_now,
    day_bounds,
    week_bounds,
    month_bounds,
    elapsed_ms,
)
from .status_projection import (
    NON_TASK_ACTIVITIES,
    START_EVENTS,
    activity_category,
    is_end_event,
    is_start_event,
)

logger = logging.getLogger(__name__)

E = EventTypeEnum

_TASK_TIME_EVENTS = (E.TASK_START, E.TASK_PAUSE, E.TASK_STOP)

# Timesheet groups lunch with breaks
TIMESHEET_ACTIVITY_TYPES: Dict[str, str] = {
    "work": "work",
    "lunch": "break",
    "break": "break",
    "meeting": "meeting",
    "travel": "travel",
    "review": "review",
    "research": "research",
}

_SESSION_CLOSERS = frozenset(
    {E.TASK_PAUSE, E.TASK_STOP, E.TASK_COMPLETE} | {end for _, end in NON_TASK_ACTIVITIES.values()}
)

_ONGOING_DESCRIPTIONS = {
    E.TASK_START: "Working on task",
    E.LUNCH_START: "On lunch break",
    E.BREAK_START: "Taking a break",
    E.MEETING_START: "In a meeting",
    E.TRAVEL_START: "Traveling",
    E.REVIEW_START: "Reviewing work",
    E.RESEARCH_START: "Researching",
}

_COMPLETED_DESCRIPTIONS = {
    E.TASK_START: "Work session",
    E.LUNCH_START: "Lunch break",
    E.BREAK_START: "Break time",
    E.MEETING_START: "Meeting session",
    E.TRAVEL_START: "Travel time",
    E.REVIEW_START: "Review session",
    E.RESEARCH_START: "Research session",
}


@dataclass
class ActivitySummary:
    total_time_ms: int
    formatted_time: str
    days: int
    hours: int
    minutes: int
    seconds: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def format_duration(ms: int) -> ActivitySummary:
    """Break milliseconds into days/hours/minutes/seconds, e.g. '1d 2h 3m 4s'."""
    ms = max(int(ms), 0)
    total_seconds = ms // 1000
    days = total_seconds // 86400
    hours = (total_seconds % 86400) // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60

    if days > 0:
        formatted = f"{days}d {hours}h {minutes}m {seconds}s"
    else:
        formatted = f"{hours}h {minutes}m {seconds}s"

    return ActivitySummary(
        total_time_ms=ms,
        formatted_time=formatted,
        days=days,
        hours=hours,
        minutes=minutes,
        seconds=seconds,
    )


def _task_label(event) -> str:
    task = getattr(event, "task", None)
    if task is not None:
        return task.issue_key or task.title or event.task_id
    return event.task_id


# ==================== PURE REPLAYS ====================

def compute_task_time_ms(events: Sequence) -> int:
    """
    Completed working time on a task.

    Each user's START..PAUSE/STOP pairs are summed separately; a start
    with no stop after it is ongoing work and is not counted.
    """
    open_starts: Dict[str, datetime] = {}
    total = 0

    for event in events:
        if event.event_type == E.TASK_START:
            open_starts[event.user_id] = event.started_at
        elif event.event_type in (E.TASK_PAUSE, E.TASK_STOP):
            started = open_starts.pop(event.user_id, None)
            if started is not None:
                total += elapsed_ms(started, event.started_at)

    return total


def compute_daily_breakdown(events: Sequence, now: datetime, window_end: datetime) -> Dict[str, int]:
    """
    Milliseconds per bucket for one window of a user's events.

    Buckets are ``task:<issue key or title>`` for task work and the
    activity category (lunch, meeting, ...) otherwise. An activity still
    open at the end is credited up to ``min(now, window_end)``.
    """
    breakdown: Dict[str, int] = defaultdict(int)
    current_key: Optional[str] = None
    current_start: Optional[datetime] = None

    for event in events:
        key = f"task:{_task_label(event)}" if event.task_id else activity_category(event.event_type)

        if current_key is not None and is_end_event(event.event_type, current_key):
            breakdown[current_key] += elapsed_ms(current_start, event.started_at)
            current_key = current_start = None

        if is_start_event(event.event_type):
            current_key, current_start = key, event.started_at

    if current_key is not None:
        breakdown[current_key] += elapsed_ms(current_start, min(now, window_end))

    return dict(breakdown)


def _timesheet_type(event_type: EventTypeEnum) -> str:
    category = activity_category(event_type)
    if category == "other":
        return event_type.value.lower()
    return TIMESHEET_ACTIVITY_TYPES[category]


def _session_key(event) -> str:
    if event.task_id:
        return f"task-{event.task_id}"
    return f"activity-{_timesheet_type(event.event_type)}"


def _describe_session(start, end_type: Optional[EventTypeEnum]) -> str:
    if end_type is None:
        text = _ONGOING_DESCRIPTIONS.get(start.event_type, "Active")
    elif start.event_type == E.TASK_START and end_type == E.TASK_PAUSE:
        text = "Work session (paused)"
    elif start.event_type == E.TASK_START and end_type == E.TASK_STOP:
        text = "Work session (completed)"
    else:
        text = _COMPLETED_DESCRIPTIONS.get(start.event_type, "Activity session")

    if start.description:
        text = f"{text}: {start.description}"
    return text


def _make_session(start, end_at: Optional[datetime], end_type, now: datetime, suffix: str) -> Dict[str, Any]:
    start_meta = start.event_metadata or {}
    is_ongoing = end_at is None
    duration = elapsed_ms(start.started_at, now if is_ongoing else end_at)
    description = _describe_session(start, None if is_ongoing else end_type)
    if start_meta.get("editedAt") and start_meta.get("editReason"):
        description += f" (Adjusted: {start_meta['editReason']})"

    return {
        "id": f"{start.id}-{suffix}",
        "start_time": start.started_at,
        "end_time": end_at,
        "duration": duration,
        "formatted_duration": format_duration(duration).formatted_time,
        "is_ongoing": is_ongoing,
        "is_adjusted": bool(start_meta.get("editedAt")),
        "event_type": (start.event_type if is_ongoing else end_type).value,
        "description": description,
    }


def build_timesheet(events: Sequence, now: datetime, min_session_ms: int) -> Dict[str, Any]:
    """
    Group a user's events into per-task and per-activity sessions.

    Only the most recent unclosed start is treated as ongoing. Older
    unclosed starts were superseded, so they end where the next start
    begins. Closed sessions shorter than ``min_session_ms`` are dropped.
    """
    by_key: Dict[str, List] = defaultdict(list)
    starts = [e for e in events if e.event_type in START_EVENTS]
    for event in events:
        by_key[_session_key(event)].append(event)

    latest_start = starts[-1] if starts else None
    sessions_by_key: Dict[str, List[Dict[str, Any]]] = {}

    for key, key_events in by_key.items():
        sessions: List[Dict[str, Any]] = []
        open_start = None

        for event in key_events:
            if event.event_type in START_EVENTS:
                open_start = event
            elif event.event_type in _SESSION_CLOSERS and open_start is not None:
                if elapsed_ms(open_start.started_at, event.started_at) >= min_session_ms:
                    sessions.append(_make_session(open_start, event.started_at, event.event_type, now, str(event.id)))
                open_start = None

        if open_start is not None:
            if open_start is latest_start:
                sessions.append(_make_session(open_start, None, None, now, "ongoing"))
            else:
                next_start = next((s for s in starts if s.started_at > open_start.started_at), None)
                if next_start is not None and elapsed_ms(open_start.started_at, next_start.started_at) >= min_session_ms:
                    sessions.append(_make_session(open_start, next_start.started_at, E.TASK_STOP, now, "auto-ended"))

        if sessions:
            sessions_by_key[key] = sessions

    entries = []
    for key, sessions in sessions_by_key.items():
        is_task = key.startswith("task-")
        first_event = by_key[key][0]
        task = getattr(first_event, "task", None) if is_task else None

        if any(s["is_ongoing"] for s in sessions):
            status = "ongoing"
        elif is_task and sessions[-1]["event_type"] == E.TASK_PAUSE.value:
            status = "paused"
        else:
            status = "completed"

        total = sum(s["duration"] for s in sessions)
        entries.append({
            "id": key,
            "date": sessions[0]["start_time"].date().isoformat(),
            "task": {
                "id": task.id,
                "title": task.title,
                "issue_key": task.issue_key,
                "priority": task.priority,
                "board_id": task.board_id,
            } if task else None,
            "sessions": sessions,
            "total_duration": total,
            "formatted_duration": format_duration(total).formatted_time,
            "activity_type": "work" if is_task else key[len("activity-"):],
            "status": status,
        })

    entries.sort(key=lambda e: max(s["start_time"] for s in e["sessions"]), reverse=True)
    return {"entries": entries, "summary": summarize_timesheet(entries)}


def summarize_timesheet(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Totals per activity type plus a productivity score (0-100)."""
    totals: Dict[str, int] = defaultdict(int)
    for entry in entries:
        totals[entry["activity_type"]] += entry["total_duration"]

    work_entries = [e for e in entries if e["activity_type"] == "work"]
    productive = totals["work"] + totals["meeting"] + totals["research"] + totals["review"]
    overall = productive + totals["break"]
    score = round(productive / overall * 100) if overall > 0 else 0

    return {
        "total_work_time": productive,
        "total_break_time": totals["break"],
        "total_meeting_time": totals["meeting"],
        "total_research_time": totals["research"],
        "total_review_time": totals["review"],
        "total_tasks": len(work_entries),
        "total_active_tasks": sum(1 for e in work_entries if e["status"] == "ongoing"),
        "total_paused_tasks": sum(1 for e in work_entries if e["status"] == "paused"),
        "formatted_total_work_time": format_duration(productive).formatted_time,
        "formatted_total_break_time": format_duration(totals["break"]).formatted_time,
        "productivity_score": score,
    }


# ==================== SERVICE ====================

class ReportingService:
    """Read-only queries over activity events and statuses."""

    def __init__(self, db: Optional[Database] = None, clock: Optional[Callable[[], datetime]] = None):
        self.db = db or get_database()
        self._now = clock or get_local_now

    async def get_task_time_spent(self, task_id: str, user_id: Optional[str] = None) -> ActivitySummary:
        """Completed time on a task, optionally for one user."""
        async with self.db.session() as session:
            events = await UserEventRepository(session).list_for_task(task_id, _TASK_TIME_EVENTS, user_id=user_id)
        return format_duration(compute_task_time_ms(events))

    async def get_daily_time_breakdown(
        self, user_id: str, day: Optional[date] = None
    ) -> Dict[str, ActivitySummary]:
        """Time per task/activity for one calendar day."""
        now = self._now()
        start, end = day_bounds(day or now.date())

        async with self.db.session() as session:
            events = await UserEventRepository(session).list_for_user(user_id, start=start, end=end)

        breakdown = compute_daily_breakdown(events, now, end)
        return {key: format_duration(ms) for key, ms in breakdown.items()}

    async def get_team_activity(self, workspace_id: str) -> List[Dict[str, Any]]:
        """Current status of every workspace member."""
        async with self.db.session() as session:
            rows = await WorkspaceRepository(session).get_member_statuses(workspace_id)

        overview = []
        for user, status in rows:
            task = status.current_task if status else None
            overview.append({
                "user": {"id": user.id, "name": user.name, "image": user.image},
                "status": {
                    "current_status": status.current_status,
                    "current_task_id": status.current_task_id,
                    "status_started_at": status.status_started_at,
                    "status_text": status.status_text,
                    "is_available": status.is_available,
                    "auto_end_at": status.auto_end_at,
                    "current_task": {
                        "id": task.id,
                        "title": task.title,
                        "issue_key": task.issue_key,
                        "priority": task.priority,
                    } if task else None,
                } if status else None,
            })
        return overview

    async def get_timesheet(
        self,
        user_id: str,
        view: str = "daily",
        day: Optional[date] = None,
        board_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Sessions and totals for a day, week (Monday start) or month."""
        now = self._now()
        target = day or now.date()
        if view == "weekly":
            start, end = week_bounds(target)
        elif view == "monthly":
            start, end = month_bounds(target)
        elif view == "daily":
            start, end = day_bounds(target)
        else:
            raise ValueError(f"Unknown timesheet view: {view}")

        async with self.db.session() as session:
            events = await UserEventRepository(session).list_for_user(
                user_id, start=start, end=end, board_id=board_id
            )

        logger.debug(f"Timesheet {view} for {user_id}: {len(events)} events between {start} and {end}")
        timesheet = build_timesheet(events, now, settings.timesheet_min_session_seconds * 1000)
        timesheet["date_range"] = {"start": start, "end": end}
        return timesheet


# Singleton
_reporting_service: Optional[ReportingService] = None


def get_reporting_service() -> ReportingService:
    """Get the reporting service singleton."""
    global _reporting_service
    if _reporting_service is None:
        _reporting_service = ReportingService()
    return _reporting_service
