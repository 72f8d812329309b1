"""
Integration tests for ReportingService against an in-memory sqlite database.
"""

import pytest
from datetime import date, timedelta

from pulse.database.models import EventTypeEnum as E, UserStatusTypeEnum as S
from pulse.services.activity import ActivityService
from pulse.services.reporting import ReportingService

MINUTE = 60_000


@pytest.fixture
def activity(seeded_db, clock):
    return ActivityService(db=seeded_db, clock=clock)


@pytest.fixture
def reporting(seeded_db, clock):
    return ReportingService(db=seeded_db, clock=clock)


async def work_morning(activity, clock):
    """09:00 task t-1, 10:00 lunch, 10:30 back, 11:00 meeting; clock ends at 11:20."""
    await activity.start_activity("u-alice", E.TASK_START, task_id="t-1")
    clock.advance(hours=1)
    await activity.start_activity("u-alice", E.LUNCH_START)
    clock.advance(minutes=30)
    await activity.start_activity("u-alice", E.LUNCH_END)
    clock.advance(minutes=30)
    await activity.start_activity("u-alice", E.MEETING_START)
    clock.advance(minutes=20)


class TestTaskTimeSpent:

    @pytest.mark.asyncio
    async def test_completed_pairs_only(self, activity, reporting, clock):
        await activity.start_activity("u-alice", E.TASK_START, task_id="t-1")
        clock.advance(minutes=30)
        await activity.start_activity("u-alice", E.TASK_PAUSE, task_id="t-1")
        clock.advance(minutes=30)
        await activity.start_activity("u-alice", E.TASK_START, task_id="t-1")
        clock.advance(minutes=15)
        await activity.start_activity("u-alice", E.TASK_STOP, task_id="t-1")
        clock.advance(minutes=5)
        await activity.start_activity("u-alice", E.TASK_START, task_id="t-1")
        clock.advance(minutes=50)

        summary = await reporting.get_task_time_spent("t-1")
        assert summary.total_time_ms == 45 * MINUTE
        assert summary.formatted_time == "0h 45m 0s"

    @pytest.mark.asyncio
    async def test_per_user_filter(self, activity, reporting, clock):
        await activity.start_activity("u-alice", E.TASK_START, task_id="t-1")
        clock.advance(minutes=5)
        await activity.start_activity("u-bob", E.TASK_START, task_id="t-1")
        clock.advance(minutes=25)
        await activity.start_activity("u-alice", E.TASK_STOP, task_id="t-1")
        clock.advance(minutes=5)
        await activity.start_activity("u-bob", E.TASK_STOP, task_id="t-1")

        assert (await reporting.get_task_time_spent("t-1")).total_time_ms == 60 * MINUTE
        assert (await reporting.get_task_time_spent("t-1", user_id="u-bob")).total_time_ms == 30 * MINUTE

    @pytest.mark.asyncio
    async def test_untouched_task(self, reporting):
        assert (await reporting.get_task_time_spent("t-3")).total_time_ms == 0


class TestDailyBreakdown:

    @pytest.mark.asyncio
    async def test_today(self, activity, reporting, clock):
        await work_morning(activity, clock)

        breakdown = await reporting.get_daily_time_breakdown("u-alice")
        assert {key: s.total_time_ms for key, s in breakdown.items()} == {
            "task:WEB-1": 60 * MINUTE,
            "lunch": 30 * MINUTE,
            "meeting": 20 * MINUTE,
        }

    @pytest.mark.asyncio
    async def test_other_day_is_empty(self, activity, reporting, clock):
        await work_morning(activity, clock)

        breakdown = await reporting.get_daily_time_breakdown("u-alice", date(2026, 3, 1))
        assert breakdown == {}


class TestTimesheet:

    @pytest.mark.asyncio
    async def test_daily_view(self, activity, reporting, clock):
        await work_morning(activity, clock)

        timesheet = await reporting.get_timesheet("u-alice")

        assert [e["id"] for e in timesheet["entries"]] == ["activity-meeting", "activity-break", "task-t-1"]
        assert timesheet["entries"][0]["status"] == "ongoing"
        assert timesheet["summary"]["total_work_time"] == 80 * MINUTE
        assert timesheet["summary"]["total_break_time"] == 30 * MINUTE
        assert timesheet["summary"]["productivity_score"] == 73
        assert timesheet["date_range"]["start"].date() == date(2026, 3, 2)

    @pytest.mark.asyncio
    async def test_weekly_view_covers_monday_to_sunday(self, activity, reporting, clock):
        await work_morning(activity, clock)
        clock.advance(days=3)

        timesheet = await reporting.get_timesheet("u-alice", view="weekly")
        assert timesheet["date_range"]["start"].date() == date(2026, 3, 2)
        assert timesheet["date_range"]["end"].date() == date(2026, 3, 8)
        assert len(timesheet["entries"]) == 3

    @pytest.mark.asyncio
    async def test_board_filter(self, activity, reporting, clock):
        await work_morning(activity, clock)

        on_board = await reporting.get_timesheet("u-alice", board_id="b-1")
        assert [e["id"] for e in on_board["entries"]] == ["task-t-1"]

        other_board = await reporting.get_timesheet("u-alice", board_id="b-2")
        assert other_board["entries"] == []

    @pytest.mark.asyncio
    async def test_unknown_view(self, reporting):
        with pytest.raises(ValueError):
            await reporting.get_timesheet("u-alice", view="yearly")


class TestTeamActivity:

    @pytest.mark.asyncio
    async def test_members_with_and_without_status(self, activity, reporting):
        await activity.start_activity("u-alice", E.TASK_START, task_id="t-1")
        await activity.start_activity("u-carol", E.MEETING_START)

        team = await reporting.get_team_activity("ws-1")

        assert [m["user"]["id"] for m in team] == ["u-alice", "u-bob"]
        alice, bob = team
        assert alice["status"]["current_status"] == S.WORKING
        assert alice["status"]["current_task"]["issue_key"] == "WEB-1"
        assert bob["status"] is None

    @pytest.mark.asyncio
    async def test_unknown_workspace(self, reporting):
        assert await reporting.get_team_activity("ws-404") == []
