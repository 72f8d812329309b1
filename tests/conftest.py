"""
Pytest configuration and shared fixtures.
"""

import pytest
import pytest_asyncio
from datetime import datetime, timedelta

from pulse.database.connection import Database
from pulse.database.models import (
    UserDB,
    WorkspaceDB,
    WorkspaceMemberDB,
    TaskDB,
    TaskAssigneeDB,
    TaskAssigneeRoleEnum,
)

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)

# Monday
START_OF_DAY = datetime(2026, 3, 2, 9, 0, 0)


class FakeClock:
    """Controllable clock passed to services in place of get_local_now."""

    def __init__(self, start: datetime = START_OF_DAY):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def db():
    """In-memory sqlite database with all tables created."""
    database = Database("sqlite+aiosqlite://")
    assert await database.initialize()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def seeded_db(db):
    """
    Database with a small team.

    - alice: primary assignee of t-1 and t-2, member of ws-1
    - bob: approved helper on t-1, member of ws-1
    - carol: assignee of t-3, not in the workspace
    """
    async with db.session() as session:
        session.add_all([
            UserDB(id="u-alice", name="Alice", email="alice@example.com"),
            UserDB(id="u-bob", name="Bob", email="bob@example.com"),
            UserDB(id="u-carol", name="Carol", email="carol@example.com"),
            WorkspaceDB(id="ws-1", name="Acme", owner_id="u-alice"),
            WorkspaceMemberDB(workspace_id="ws-1", user_id="u-alice", role="OWNER"),
            WorkspaceMemberDB(workspace_id="ws-1", user_id="u-bob"),
            TaskDB(
                id="t-1", title="Build login page", issue_key="WEB-1", priority="high",
                workspace_id="ws-1", board_id="b-1", assignee_id="u-alice",
            ),
            TaskDB(
                id="t-2", title="Fix footer", issue_key="WEB-2",
                workspace_id="ws-1", board_id="b-1", assignee_id="u-alice",
            ),
            TaskDB(id="t-3", title="Write docs", board_id="b-2", assignee_id="u-carol"),
            TaskAssigneeDB(
                task_id="t-1", user_id="u-bob",
                role=TaskAssigneeRoleEnum.HELPER, total_time_worked=0,
            ),
        ])
    return db
