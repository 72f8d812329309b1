"""
SQLAlchemy models for the activity database.

Schema includes:
- Users, workspaces and workspace membership
- Tasks with a primary assignee
- Task assignees (helpers) with accumulated working time
- Legacy per-task activity log
- Append-only user activity events
- Current status projection, one row per user
"""

import enum
import uuid
from datetime import datetime
from typing import Optional, Dict, Any, List

from sqlalchemy import (
    String,
    Text,
    Integer,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Enum as SQLEnum,
    JSON,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


# ==================== ENUMS ====================

class EventTypeEnum(str, enum.Enum):
    TASK_START = "TASK_START"
    TASK_PAUSE = "TASK_PAUSE"
    TASK_STOP = "TASK_STOP"
    TASK_COMPLETE = "TASK_COMPLETE"
    LUNCH_START = "LUNCH_START"
    LUNCH_END = "LUNCH_END"
    BREAK_START = "BREAK_START"
    BREAK_END = "BREAK_END"
    MEETING_START = "MEETING_START"
    MEETING_END = "MEETING_END"
    TRAVEL_START = "TRAVEL_START"
    TRAVEL_END = "TRAVEL_END"
    REVIEW_START = "REVIEW_START"
    REVIEW_END = "REVIEW_END"
    RESEARCH_START = "RESEARCH_START"
    RESEARCH_END = "RESEARCH_END"
    OFFLINE = "OFFLINE"
    AVAILABLE = "AVAILABLE"


class UserStatusTypeEnum(str, enum.Enum):
    WORKING = "WORKING"
    LUNCH = "LUNCH"
    BREAK = "BREAK"
    MEETING = "MEETING"
    TRAVEL = "TRAVEL"
    REVIEW = "REVIEW"
    RESEARCH = "RESEARCH"
    OFFLINE = "OFFLINE"
    AVAILABLE = "AVAILABLE"


class TaskAssigneeRoleEnum(str, enum.Enum):
    ASSIGNEE = "ASSIGNEE"
    HELPER = "HELPER"


class TaskAssigneeStatusEnum(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# ==================== USERS & WORKSPACES ====================

class UserDB(Base):
    """Registered user."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    # Relationships
    status: Mapped[Optional["UserStatusDB"]] = relationship(
        "UserStatusDB", back_populates="user", uselist=False
    )


class WorkspaceDB(Base):
    """Workspace grouping members and tasks."""
    __tablename__ = "workspaces"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    members: Mapped[List["WorkspaceMemberDB"]] = relationship(
        "WorkspaceMemberDB", back_populates="workspace", cascade="all, delete-orphan"
    )


class WorkspaceMemberDB(Base):
    """Membership of a user in a workspace."""
    __tablename__ = "workspace_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workspace_id: Mapped[str] = mapped_column(String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String(50), default="MEMBER")

    joined_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    workspace: Mapped["WorkspaceDB"] = relationship("WorkspaceDB", back_populates="members")
    user: Mapped["UserDB"] = relationship("UserDB")

    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_workspace_member"),
        Index("idx_member_workspace", "workspace_id"),
    )


# ==================== TASKS ====================

class TaskDB(Base):
    """Task that activity can be tracked against."""
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    issue_key: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # e.g. WEB-42
    priority: Mapped[str] = mapped_column(String(20), default="medium")
    status: Mapped[str] = mapped_column(String(50), default="todo")

    workspace_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("workspaces.id"), nullable=True)
    board_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    # Primary assignee; helpers live in task_assignees
    assignee_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_task_workspace", "workspace_id"),
        Index("idx_task_board", "board_id"),
        Index("idx_task_assignee", "assignee_id"),
    )


class TaskAssigneeDB(Base):
    """Additional people on a task, with helper time accumulation."""
    __tablename__ = "task_assignees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[TaskAssigneeRoleEnum] = mapped_column(
        SQLEnum(TaskAssigneeRoleEnum), default=TaskAssigneeRoleEnum.HELPER
    )
    status: Mapped[TaskAssigneeStatusEnum] = mapped_column(
        SQLEnum(TaskAssigneeStatusEnum), default=TaskAssigneeStatusEnum.APPROVED
    )

    # Time tracking (milliseconds)
    last_worked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    total_time_worked: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    assigned_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("task_id", "user_id", name="uq_task_assignee"),
        Index("idx_task_assignee_user", "user_id"),
    )


class TaskActivityDB(Base):
    """Legacy per-task activity log, kept in step with task events."""
    __tablename__ = "task_activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # TASK_PLAY_STARTED, ...
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON string

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_task_activity_task", "task_id"),
        Index("idx_task_activity_user", "user_id"),
    )


# ==================== ACTIVITY ====================

class UserEventDB(Base):
    """Append-only activity event (start/stop of a working or non-working state)."""
    __tablename__ = "user_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_type: Mapped[EventTypeEnum] = mapped_column(SQLEnum(EventTypeEnum), nullable=False)
    task_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    # Stamped when a later event closes this one
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    task: Mapped[Optional["TaskDB"]] = relationship("TaskDB")

    __table_args__ = (
        Index("idx_event_user_started", "user_id", "started_at"),
        Index("idx_event_task", "task_id"),
        Index("idx_event_type", "event_type"),
    )


class UserStatusDB(Base):
    """Current status projection, rebuilt from the last applied event."""
    __tablename__ = "user_statuses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    current_status: Mapped[UserStatusTypeEnum] = mapped_column(
        SQLEnum(UserStatusTypeEnum), default=UserStatusTypeEnum.AVAILABLE, nullable=False
    )
    current_task_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True
    )
    status_started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    auto_end_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    user: Mapped["UserDB"] = relationship("UserDB", back_populates="status")
    current_task: Mapped[Optional["TaskDB"]] = relationship("TaskDB")

    __table_args__ = (
        Index("idx_status_current", "current_status"),
    )
