"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

# Must be set before any module reads the cached settings
os.environ.setdefault("REIMBURSEMENT_ENVIRONMENT", "testing")
os.environ.setdefault("REIMBURSEMENT_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from reimbursement.db.connection import build_session_maker  # noqa: E402
from reimbursement.models import Base, Expense, Request  # noqa: E402
from reimbursement.services.reimbursement_state_machine import ReimbursementStateMachine  # noqa: E402
from reimbursement.services.workflow_service import ReimbursementWorkflowService  # noqa: E402


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    """Clock starting at a fixed instant."""
    return ManualClock(datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
async def engine(tmp_path):
    """Async engine on a throwaway SQLite file with all tables created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'reimbursements.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def seeded_request(session_maker):
    """A request of user 42 with two expenses, committed in its own session."""
    async with session_maker() as session:
        request = Request(
            user_id=42,
            description="Conference trip",
            expenses=[
                Expense(subject="Flight", estimated_amount=Decimal("300.00")),
                Expense(subject="Hotel", estimated_amount=Decimal("450.00")),
            ],
        )
        session.add(request)
        await session.commit()
        return SimpleNamespace(
            id=request.id,
            user_id=request.user_id,
            expense_ids=[expense.id for expense in request.expenses],
        )


@pytest.fixture
def service(session, clock):
    """Workflow service on the test session with an isolated state machine."""
    return ReimbursementWorkflowService(
        session,
        clock=clock,
        state_machine=ReimbursementStateMachine(),
    )
