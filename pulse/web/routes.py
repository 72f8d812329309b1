"""
Web routes for activity tracking.

Thin JSON layer over ActivityService and ReportingService. Authentication
happens upstream; the user id is taken from the request as given.
"""

import logging
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query

from ..database.exceptions import (
    DatabaseConstraintError,
    TransactionFailedError,
    UnmappedEventTypeError,
)
from ..database.models import EventTypeEnum
from ..models.api_validation import (
    StartActivityRequest,
    EndActivityRequest,
    UserEventResponse,
    UserStatusResponse,
    ActivitySummaryResponse,
    DailyBreakdownResponse,
    HistoryResponse,
    TeamMemberActivity,
    TimesheetView,
)
from ..services.activity import ActivityService, get_activity_service
from ..services.reporting import ReportingService, get_reporting_service
from ..utils.datetime_utils import get_local_now, parse_date, to_naive_local

logger = logging.getLogger(__name__)

router = APIRouter()


def _raise_for(error: Exception) -> None:
    """Translate service errors into HTTP errors."""
    logger.warning(f"Activity request failed: {type(error).__name__}: {error}")
    if isinstance(error, UnmappedEventTypeError):
        raise HTTPException(status_code=400, detail=str(error))
    if isinstance(error, DatabaseConstraintError):
        raise HTTPException(status_code=409, detail="Referenced user or task does not exist")
    if isinstance(error, TransactionFailedError):
        raise HTTPException(status_code=503, detail="Transaction failed, please retry")
    raise error


def _parse_day(value: Optional[str]):
    try:
        return parse_date(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {value}")


# ============================================================================
# Transitions
# ============================================================================

@router.post("/api/activities/start", response_model=UserEventResponse, status_code=201)
async def start_activity(
    data: StartActivityRequest,
    service: ActivityService = Depends(get_activity_service),
):
    """Start an activity, closing whatever the user was doing."""
    try:
        event = await service.start_activity(
            user_id=data.user_id,
            event_type=data.event_type,
            task_id=data.task_id,
            description=data.description,
            metadata=data.metadata,
            auto_end_at=to_naive_local(data.auto_end_at),
        )
    except (UnmappedEventTypeError, DatabaseConstraintError, TransactionFailedError) as e:
        _raise_for(e)
    return UserEventResponse.model_validate(event)


@router.post("/api/activities/end", response_model=UserEventResponse)
async def end_activity(
    data: EndActivityRequest,
    service: ActivityService = Depends(get_activity_service),
):
    """End the current activity and mark the user available."""
    try:
        event = await service.end_current_activity(data.user_id, data.description)
    except (DatabaseConstraintError, TransactionFailedError) as e:
        _raise_for(e)
    return UserEventResponse.model_validate(event)


# ============================================================================
# Reads
# ============================================================================

@router.get("/api/activities/status/{user_id}", response_model=UserStatusResponse)
async def get_status(user_id: str, service: ActivityService = Depends(get_activity_service)):
    status = await service.get_current_status(user_id)
    if status is None:
        raise HTTPException(status_code=404, detail="No status recorded for user")
    return status


@router.get("/api/activities/history/{user_id}", response_model=HistoryResponse)
async def get_history(
    user_id: str,
    limit: Optional[int] = Query(None, ge=1, le=500),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    event_types: Optional[List[EventTypeEnum]] = Query(None),
    service: ActivityService = Depends(get_activity_service),
):
    events = await service.get_activity_history(
        user_id,
        limit=limit,
        start_date=to_naive_local(start),
        end_date=to_naive_local(end),
        event_types=event_types,
    )
    return {"events": [UserEventResponse.model_validate(e) for e in events]}


@router.get("/api/activities/tasks/{task_id}/time", response_model=ActivitySummaryResponse)
async def get_task_time(
    task_id: str,
    user_id: Optional[str] = None,
    reporting: ReportingService = Depends(get_reporting_service),
):
    summary = await reporting.get_task_time_spent(task_id, user_id=user_id)
    return summary.to_dict()


@router.get("/api/activities/daily/{user_id}", response_model=DailyBreakdownResponse)
async def get_daily_breakdown(
    user_id: str,
    date: Optional[str] = None,
    reporting: ReportingService = Depends(get_reporting_service),
):
    day = _parse_day(date)
    breakdown = await reporting.get_daily_time_breakdown(user_id, day)
    return {
        "user_id": user_id,
        "date": day or get_local_now().date(),
        "breakdown": {key: summary.to_dict() for key, summary in breakdown.items()},
    }


@router.get("/api/activities/timesheet/{user_id}")
async def get_timesheet(
    user_id: str,
    view: TimesheetView = "daily",
    date: Optional[str] = None,
    board_id: Optional[str] = None,
    reporting: ReportingService = Depends(get_reporting_service),
):
    return await reporting.get_timesheet(user_id, view=view, day=_parse_day(date), board_id=board_id)


@router.get("/api/workspaces/{workspace_id}/team-activity", response_model=List[TeamMemberActivity])
async def get_team_activity(
    workspace_id: str,
    reporting: ReportingService = Depends(get_reporting_service),
):
    return await reporting.get_team_activity(workspace_id)
