"""
Tests for the pure replay functions in pulse/services/reporting.py
"""

import pytest
from datetime import datetime, timedelta
from types import SimpleNamespace

from pulse.database.models import EventTypeEnum as E
from pulse.services.reporting import (
    format_duration,
    compute_task_time_ms,
    compute_daily_breakdown,
    build_timesheet,
    summarize_timesheet,
)

T0 = datetime(2026, 3, 2, 9, 0, 0)
MINUTE = 60_000

WEB_1 = SimpleNamespace(id="t-1", title="Build login page", issue_key="WEB-1", priority="high", board_id="b-1")
DOCS = SimpleNamespace(id="t-3", title="Write docs", issue_key=None, priority="medium", board_id="b-2")

_ids = iter(range(1, 10_000))


def ev(event_type, minutes, user_id="u-alice", task=None, task_id=None, description=None, metadata=None):
    """Event-like object at T0 + minutes."""
    return SimpleNamespace(
        id=next(_ids),
        user_id=user_id,
        event_type=event_type,
        started_at=T0 + timedelta(minutes=minutes),
        task=task,
        task_id=task.id if task else task_id,
        description=description,
        event_metadata=metadata,
    )


class TestFormatDuration:

    def test_zero(self):
        summary = format_duration(0)
        assert summary.formatted_time == "0h 0m 0s"
        assert summary.total_time_ms == 0

    def test_hours_minutes_seconds(self):
        summary = format_duration(3_723_999)
        assert summary.formatted_time == "1h 2m 3s"
        assert (summary.hours, summary.minutes, summary.seconds) == (1, 2, 3)

    def test_days_shown_only_when_present(self):
        summary = format_duration(90_061_000)
        assert summary.formatted_time == "1d 1h 1m 1s"
        assert summary.days == 1

    def test_negative_clamped(self):
        assert format_duration(-500).total_time_ms == 0

    def test_to_dict(self):
        assert format_duration(61_000).to_dict() == {
            "total_time_ms": 61_000,
            "formatted_time": "0h 1m 1s",
            "days": 0,
            "hours": 0,
            "minutes": 1,
            "seconds": 1,
        }


class TestComputeTaskTime:

    def test_sums_start_stop_pairs(self):
        events = [
            ev(E.TASK_START, 0, task=WEB_1),
            ev(E.TASK_PAUSE, 30, task=WEB_1),
            ev(E.TASK_START, 60, task=WEB_1),
            ev(E.TASK_STOP, 75, task=WEB_1),
        ]
        assert compute_task_time_ms(events) == 45 * MINUTE

    def test_trailing_start_not_counted(self):
        events = [
            ev(E.TASK_START, 0, task=WEB_1),
            ev(E.TASK_STOP, 10, task=WEB_1),
            ev(E.TASK_START, 20, task=WEB_1),
        ]
        assert compute_task_time_ms(events) == 10 * MINUTE

    def test_users_replayed_independently(self):
        events = [
            ev(E.TASK_START, 0, user_id="u-alice", task=WEB_1),
            ev(E.TASK_START, 5, user_id="u-bob", task=WEB_1),
            ev(E.TASK_STOP, 30, user_id="u-alice", task=WEB_1),
            ev(E.TASK_STOP, 35, user_id="u-bob", task=WEB_1),
        ]
        assert compute_task_time_ms(events) == 60 * MINUTE

    def test_stop_without_start_ignored(self):
        assert compute_task_time_ms([ev(E.TASK_STOP, 10, task=WEB_1)]) == 0

    def test_restart_replaces_open_start(self):
        events = [
            ev(E.TASK_START, 0, task=WEB_1),
            ev(E.TASK_START, 10, task=WEB_1),
            ev(E.TASK_STOP, 20, task=WEB_1),
        ]
        assert compute_task_time_ms(events) == 10 * MINUTE

    def test_empty(self):
        assert compute_task_time_ms([]) == 0


class TestComputeDailyBreakdown:

    def test_buckets_by_task_and_category(self):
        events = [
            ev(E.TASK_START, 0, task=WEB_1),
            ev(E.TASK_STOP, 60, task=WEB_1),
            ev(E.LUNCH_START, 60),
            ev(E.LUNCH_END, 90),
            ev(E.MEETING_START, 120),
        ]
        now = T0 + timedelta(minutes=140)
        window_end = datetime(2026, 3, 2, 23, 59, 59, 999000)

        assert compute_daily_breakdown(events, now, window_end) == {
            "task:WEB-1": 60 * MINUTE,
            "lunch": 30 * MINUTE,
            "meeting": 20 * MINUTE,
        }

    def test_open_activity_capped_at_window_end(self):
        late = datetime(2026, 3, 2, 23, 0, 0)
        events = [SimpleNamespace(
            id=1, user_id="u-alice", event_type=E.MEETING_START, started_at=late,
            task=None, task_id=None, description=None, event_metadata=None,
        )]
        now = datetime(2026, 3, 3, 10, 0, 0)
        window_end = datetime(2026, 3, 2, 23, 59, 59, 999000)

        assert compute_daily_breakdown(events, now, window_end) == {"meeting": 3_599_999}

    def test_task_label_falls_back_to_title_then_id(self):
        events = [
            ev(E.TASK_START, 0, task=DOCS),
            ev(E.TASK_PAUSE, 5, task=DOCS),
            ev(E.TASK_START, 10, task_id="t-9"),
            ev(E.TASK_STOP, 20, task_id="t-9"),
        ]
        breakdown = compute_daily_breakdown(events, T0 + timedelta(hours=1), T0 + timedelta(hours=12))
        assert breakdown == {"task:Write docs": 5 * MINUTE, "task:t-9": 10 * MINUTE}

    def test_end_for_other_bucket_does_not_close(self):
        events = [
            ev(E.MEETING_START, 0),
            ev(E.LUNCH_END, 10),
        ]
        breakdown = compute_daily_breakdown(events, T0 + timedelta(minutes=30), T0 + timedelta(hours=12))
        assert breakdown == {"meeting": 30 * MINUTE}


class TestBuildTimesheet:

    def test_sessions_grouped_and_sorted(self):
        events = [
            ev(E.TASK_START, 0, task=WEB_1),
            ev(E.TASK_STOP, 60, task=WEB_1),
            ev(E.LUNCH_START, 60),
            ev(E.LUNCH_END, 90),
            ev(E.MEETING_START, 120),
        ]
        timesheet = build_timesheet(events, T0 + timedelta(minutes=140), MINUTE)
        entries = timesheet["entries"]

        assert [e["id"] for e in entries] == ["activity-meeting", "activity-break", "task-t-1"]

        meeting, lunch, task = entries
        assert meeting["status"] == "ongoing"
        assert meeting["sessions"][0]["is_ongoing"] is True
        assert meeting["sessions"][0]["end_time"] is None
        assert meeting["total_duration"] == 20 * MINUTE

        assert lunch["activity_type"] == "break"
        assert lunch["sessions"][0]["description"] == "Lunch break"

        assert task["status"] == "completed"
        assert task["task"]["issue_key"] == "WEB-1"
        assert task["sessions"][0]["event_type"] == "TASK_STOP"
        assert task["sessions"][0]["description"] == "Work session (completed)"
        assert task["formatted_duration"] == "1h 0m 0s"
        assert task["date"] == "2026-03-02"

    def test_short_sessions_dropped(self):
        events = [
            ev(E.BREAK_START, 0),
            SimpleNamespace(
                id=next(_ids), user_id="u-alice", event_type=E.BREAK_END,
                started_at=T0 + timedelta(seconds=30), task=None, task_id=None,
                description=None, event_metadata=None,
            ),
        ]
        timesheet = build_timesheet(events, T0 + timedelta(hours=1), MINUTE)
        assert timesheet["entries"] == []

    def test_superseded_start_ends_at_next_start(self):
        events = [
            ev(E.MEETING_START, 0),
            ev(E.TASK_START, 30, task=WEB_1),
        ]
        timesheet = build_timesheet(events, T0 + timedelta(minutes=60), MINUTE)
        by_id = {e["id"]: e for e in timesheet["entries"]}

        meeting = by_id["activity-meeting"]["sessions"][0]
        assert meeting["is_ongoing"] is False
        assert meeting["end_time"] == T0 + timedelta(minutes=30)
        assert meeting["duration"] == 30 * MINUTE
        assert by_id["activity-meeting"]["status"] == "completed"

        assert by_id["task-t-1"]["status"] == "ongoing"
        assert by_id["task-t-1"]["total_duration"] == 30 * MINUTE

    def test_paused_task(self):
        events = [
            ev(E.TASK_START, 0, task=WEB_1),
            ev(E.TASK_PAUSE, 20, task=WEB_1),
        ]
        entry = build_timesheet(events, T0 + timedelta(hours=1), MINUTE)["entries"][0]
        assert entry["status"] == "paused"
        assert entry["sessions"][0]["description"] == "Work session (paused)"

    def test_adjusted_session(self):
        events = [
            ev(E.TASK_START, 0, task=WEB_1, description="Login form",
               metadata={"editedAt": "2026-03-02T12:00:00", "editReason": "Forgot to stop"}),
            ev(E.TASK_STOP, 45, task=WEB_1),
        ]
        session = build_timesheet(events, T0 + timedelta(hours=1), MINUTE)["entries"][0]["sessions"][0]
        assert session["is_adjusted"] is True
        assert session["description"] == "Work session (completed): Login form (Adjusted: Forgot to stop)"

    def test_summary(self):
        events = [
            ev(E.TASK_START, 0, task=WEB_1),
            ev(E.TASK_STOP, 60, task=WEB_1),
            ev(E.LUNCH_START, 60),
            ev(E.LUNCH_END, 90),
        ]
        summary = build_timesheet(events, T0 + timedelta(hours=2), MINUTE)["summary"]

        assert summary["total_work_time"] == 60 * MINUTE
        assert summary["total_break_time"] == 30 * MINUTE
        assert summary["total_tasks"] == 1
        assert summary["total_active_tasks"] == 0
        assert summary["productivity_score"] == 67

    def test_empty_summary(self):
        summary = summarize_timesheet([])
        assert summary["productivity_score"] == 0
        assert summary["formatted_total_work_time"] == "0h 0m 0s"
