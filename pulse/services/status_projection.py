"""
Pure transition rules for user activity.

Everything here is free of I/O: the event-type to status table, the
single-active-activity predicates, and ``apply_event`` which folds one
event into a status snapshot. The activity service runs these inside its
transaction and persists the results.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Optional, Union, Tuple

from ..database.models import EventTypeEnum, UserStatusTypeEnum
from ..database.exceptions import UnmappedEventTypeError

E = EventTypeEnum
S = UserStatusTypeEnum


@dataclass(frozen=True)
class StatusMapping:
    status: UserStatusTypeEnum
    is_available: bool


EVENT_STATUS_MAP: Dict[EventTypeEnum, StatusMapping] = {
    E.TASK_START: StatusMapping(S.WORKING, False),
    E.TASK_PAUSE: StatusMapping(S.AVAILABLE, True),
    E.TASK_STOP: StatusMapping(S.AVAILABLE, True),
    E.TASK_COMPLETE: StatusMapping(S.AVAILABLE, True),
    E.LUNCH_START: StatusMapping(S.LUNCH, False),
    E.LUNCH_END: StatusMapping(S.AVAILABLE, True),
    E.BREAK_START: StatusMapping(S.BREAK, False),
    E.BREAK_END: StatusMapping(S.AVAILABLE, True),
    E.MEETING_START: StatusMapping(S.MEETING, False),
    E.MEETING_END: StatusMapping(S.AVAILABLE, True),
    E.TRAVEL_START: StatusMapping(S.TRAVEL, False),
    E.TRAVEL_END: StatusMapping(S.AVAILABLE, True),
    E.REVIEW_START: StatusMapping(S.REVIEW, False),
    E.REVIEW_END: StatusMapping(S.AVAILABLE, True),
    E.RESEARCH_START: StatusMapping(S.RESEARCH, False),
    E.RESEARCH_END: StatusMapping(S.AVAILABLE, True),
    E.OFFLINE: StatusMapping(S.OFFLINE, False),
    E.AVAILABLE: StatusMapping(S.AVAILABLE, True),
}

_unmapped = set(EventTypeEnum) - set(EVENT_STATUS_MAP)
if _unmapped:
    raise RuntimeError(f"EVENT_STATUS_MAP is missing event types: {sorted(e.value for e in _unmapped)}")


# Non-task activities: category -> (start event, end event)
NON_TASK_ACTIVITIES: Dict[str, Tuple[EventTypeEnum, EventTypeEnum]] = {
    "lunch": (E.LUNCH_START, E.LUNCH_END),
    "break": (E.BREAK_START, E.BREAK_END),
    "meeting": (E.MEETING_START, E.MEETING_END),
    "travel": (E.TRAVEL_START, E.TRAVEL_END),
    "review": (E.REVIEW_START, E.REVIEW_END),
    "research": (E.RESEARCH_START, E.RESEARCH_END),
}

TASK_EVENTS = frozenset({E.TASK_START, E.TASK_PAUSE, E.TASK_STOP, E.TASK_COMPLETE})
TASK_CLOSING_EVENTS = frozenset({E.TASK_PAUSE, E.TASK_STOP, E.TASK_COMPLETE})

# Pause/stop act on the task being worked on unless they name another one
_TASK_CONTROL_EVENTS = frozenset({E.TASK_PAUSE, E.TASK_STOP})

START_EVENTS = frozenset({E.TASK_START} | {start for start, _ in NON_TASK_ACTIVITIES.values()})

_END_TO_START = {end: start for start, end in NON_TASK_ACTIVITIES.values()}

TASK_ACTION_LABELS: Dict[EventTypeEnum, str] = {
    E.TASK_START: "TASK_PLAY_STARTED",
    E.TASK_PAUSE: "TASK_PLAY_PAUSED",
    E.TASK_STOP: "TASK_PLAY_STOPPED",
    E.TASK_COMPLETE: "TASK_COMPLETED",
}


def coerce_event_type(event_type: Union[EventTypeEnum, str]) -> EventTypeEnum:
    """Turn a raw value into an EventTypeEnum, failing loudly on anything unknown."""
    if isinstance(event_type, EventTypeEnum):
        return event_type
    try:
        return EventTypeEnum(event_type)
    except ValueError:
        raise UnmappedEventTypeError(event_type) from None


def status_for_event(event_type: Union[EventTypeEnum, str]) -> StatusMapping:
    """Look up the status an event puts the user into."""
    mapping = EVENT_STATUS_MAP.get(coerce_event_type(event_type))
    if mapping is None:
        raise UnmappedEventTypeError(event_type)
    return mapping


@dataclass(frozen=True)
class StatusSnapshot:
    """In-memory copy of a user's status projection."""
    user_id: str
    current_status: UserStatusTypeEnum
    current_task_id: Optional[str]
    status_started_at: datetime
    status_text: Optional[str] = None
    is_available: bool = True
    auto_end_at: Optional[datetime] = None

    @property
    def is_working(self) -> bool:
        return self.current_status == S.WORKING and self.current_task_id is not None

    @classmethod
    def from_row(cls, row) -> "StatusSnapshot":
        return cls(
            user_id=row.user_id,
            current_status=row.current_status,
            current_task_id=row.current_task_id,
            status_started_at=row.status_started_at,
            status_text=row.status_text,
            is_available=row.is_available,
            auto_end_at=row.auto_end_at,
        )


def apply_event(
    snapshot: Optional[StatusSnapshot],
    user_id: str,
    event_type: Union[EventTypeEnum, str],
    at: datetime,
    task_id: Optional[str] = None,
    status_text: Optional[str] = None,
    auto_end_at: Optional[datetime] = None,
) -> StatusSnapshot:
    """
    Fold one event into the user's status.

    The task id is kept only when the resulting status is WORKING, so the
    projection never points at a task while the user is doing something else.
    """
    mapping = status_for_event(event_type)
    current_task_id = task_id if mapping.status == S.WORKING else None

    values = dict(
        current_status=mapping.status,
        current_task_id=current_task_id,
        status_started_at=at,
        status_text=status_text,
        is_available=mapping.is_available,
        auto_end_at=auto_end_at,
    )
    if snapshot is None:
        return StatusSnapshot(user_id=user_id, **values)
    return replace(snapshot, **values)


def should_end_activity(ongoing_start: EventTypeEnum, new_event: EventTypeEnum) -> bool:
    """Only one activity may be open at a time: anything different ends the ongoing one."""
    return coerce_event_type(new_event) != coerce_event_type(ongoing_start)


def should_stop_current_task(
    current_task_id: Optional[str],
    new_event: EventTypeEnum,
    new_task_id: Optional[str] = None,
) -> bool:
    """Whether the task the user is working on must be auto-stopped before ``new_event``."""
    if current_task_id is None:
        return False
    new_event = coerce_event_type(new_event)
    if new_event == E.TASK_START:
        return new_task_id != current_task_id
    if new_event in _TASK_CONTROL_EVENTS:
        return new_task_id is not None and new_task_id != current_task_id
    return True


def resolve_task_id(
    current_task_id: Optional[str],
    event_type: EventTypeEnum,
    task_id: Optional[str] = None,
) -> Optional[str]:
    """A pause, stop or complete that names no task applies to the current one."""
    if task_id is None and coerce_event_type(event_type) in TASK_CLOSING_EVENTS:
        return current_task_id
    return task_id


def is_task_related_event(event_type: EventTypeEnum) -> bool:
    return coerce_event_type(event_type) in TASK_EVENTS


def is_start_event(event_type: EventTypeEnum) -> bool:
    return coerce_event_type(event_type) in START_EVENTS


def start_event_for(event_type: EventTypeEnum) -> Optional[EventTypeEnum]:
    """The start event that ``event_type`` closes, if it closes one."""
    event_type = coerce_event_type(event_type)
    if event_type in TASK_CLOSING_EVENTS:
        return E.TASK_START
    return _END_TO_START.get(event_type)


def activity_category(event_type: EventTypeEnum) -> str:
    """Reporting bucket name for an event type."""
    event_type = coerce_event_type(event_type)
    if event_type in TASK_EVENTS:
        return "work"
    for category, pair in NON_TASK_ACTIVITIES.items():
        if event_type in pair:
            return category
    return "other"


def is_end_event(event_type: EventTypeEnum, current_key: str) -> bool:
    """Whether ``event_type`` closes the open reporting bucket ``current_key``."""
    event_type = coerce_event_type(event_type)
    if current_key.startswith("task:") or current_key == "work":
        return event_type in TASK_CLOSING_EVENTS
    pair = NON_TASK_ACTIVITIES.get(current_key)
    return pair is not None and event_type == pair[1]


def task_action_label(event_type: EventTypeEnum) -> str:
    event_type = coerce_event_type(event_type)
    return TASK_ACTION_LABELS.get(event_type, event_type.value)
