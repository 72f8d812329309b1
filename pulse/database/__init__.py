"""
Database module for Pulse.

Handles:
- Append-only activity events per user
- Current status projection per user
- Helper time accumulation on tasks
- Legacy task activity log
- Workspace membership for team overviews
"""

from .connection import (
    get_database,
    Database,
    init_database,
    close_database,
)
from .models import (
    Base,
    UserDB,
    WorkspaceDB,
    WorkspaceMemberDB,
    TaskDB,
    TaskAssigneeDB,
    TaskActivityDB,
    UserEventDB,
    UserStatusDB,
    EventTypeEnum,
    UserStatusTypeEnum,
)

__all__ = [
    "get_database",
    "Database",
    "init_database",
    "close_database",
    "Base",
    "UserDB",
    "WorkspaceDB",
    "WorkspaceMemberDB",
    "TaskDB",
    "TaskAssigneeDB",
    "TaskActivityDB",
    "UserEventDB",
    "UserStatusDB",
    "EventTypeEnum",
    "UserStatusTypeEnum",
]
