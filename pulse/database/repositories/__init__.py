"""
Repository classes for database operations.

Repositories are bound to a session so a whole activity transition can
run inside one transaction.
"""

from .events import UserEventRepository
from .status import UserStatusRepository
from .task_assignees import TaskAssigneeRepository
from .task_activity import TaskActivityRepository
from .workspace import WorkspaceRepository

__all__ = [
    "UserEventRepository",
    "UserStatusRepository",
    "TaskAssigneeRepository",
    "TaskActivityRepository",
    "WorkspaceRepository",
]
