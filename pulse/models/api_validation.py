"""
Pydantic models for activity API input validation and responses.

Event types are validated against the closed enum at the boundary, so
unknown values are rejected with a 422 before reaching the service.
"""

from datetime import datetime, date
from typing import Optional, Dict, Any, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..database.models import EventTypeEnum, UserStatusTypeEnum


# ============================================
# REQUESTS
# ============================================

class StartActivityRequest(BaseModel):
    """Body for starting an activity."""
    user_id: str = Field(..., min_length=1, max_length=36)
    event_type: EventTypeEnum
    task_id: Optional[str] = Field(None, min_length=1, max_length=36)
    description: Optional[str] = Field(None, max_length=2000)
    metadata: Optional[Dict[str, Any]] = None
    auto_end_at: Optional[datetime] = None

    @field_validator("description")
    @classmethod
    def strip_description(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None


class EndActivityRequest(BaseModel):
    """Body for ending the current activity."""
    user_id: str = Field(..., min_length=1, max_length=36)
    description: Optional[str] = Field(None, max_length=2000)


TimesheetView = Literal["daily", "weekly", "monthly"]


# ============================================
# RESPONSES
# ============================================

class UserEventResponse(BaseModel):
    """An activity event as returned by the API."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    user_id: str
    event_type: EventTypeEnum
    task_id: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="event_metadata")


class TaskSummary(BaseModel):
    id: str
    title: str
    issue_key: Optional[str] = None
    priority: Optional[str] = None


class UserStatusResponse(BaseModel):
    """Current status projection."""
    user_id: str
    current_status: UserStatusTypeEnum
    current_task_id: Optional[str] = None
    status_started_at: datetime
    status_text: Optional[str] = None
    is_available: bool
    auto_end_at: Optional[datetime] = None
    current_task: Optional[TaskSummary] = None


class ActivitySummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_time_ms: int
    formatted_time: str
    days: int
    hours: int
    minutes: int
    seconds: int


class TeamMemberUser(BaseModel):
    id: str
    name: Optional[str] = None
    image: Optional[str] = None


class TeamMemberStatus(BaseModel):
    current_status: UserStatusTypeEnum
    current_task_id: Optional[str] = None
    status_started_at: datetime
    status_text: Optional[str] = None
    is_available: bool
    auto_end_at: Optional[datetime] = None
    current_task: Optional[TaskSummary] = None


class TeamMemberActivity(BaseModel):
    user: TeamMemberUser
    status: Optional[TeamMemberStatus] = None


class DailyBreakdownResponse(BaseModel):
    user_id: str
    date: date
    breakdown: Dict[str, ActivitySummaryResponse]


class HistoryResponse(BaseModel):
    events: List[UserEventResponse]
