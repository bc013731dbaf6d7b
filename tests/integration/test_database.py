"""
Integration Tests for Database Operations
Tests the application engine, session maker and table creation
"""

import pytest
from sqlalchemy import inspect, text

from reimbursement.core.config import get_settings
from reimbursement.db.connection import (
    check_db_connection,
    close_db_connection,
    get_engine,
    get_session,
    get_session_maker,
    init_models,
)


@pytest.fixture(autouse=True)
async def fresh_engine():
    """Each test gets its own engine bound to its own event loop."""
    await close_db_connection()
    yield
    await close_db_connection()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_database_connection():
    """Test that database connection works"""
    is_healthy = await check_db_connection()
    assert is_healthy is True


@pytest.mark.integration
@pytest.mark.asyncio
async def test_database_query():
    """Test basic database query"""
    session_maker = get_session_maker()

    async with session_maker() as session:
        result = await session.execute(text("SELECT 1 as num"))
        row = result.first()
        assert row[0] == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_engine_is_reused_until_closed():
    """Test the engine is a process-wide singleton"""
    engine = get_engine()
    assert get_engine() is engine

    await close_db_connection()
    assert get_engine() is not engine


@pytest.mark.integration
@pytest.mark.asyncio
async def test_session_dependency_yields_session():
    """Test the FastAPI session dependency"""
    sessions = get_session()
    session = await sessions.__anext__()

    result = await session.execute(text("SELECT 1"))
    assert result.scalar_one() == 1

    with pytest.raises(StopAsyncIteration):
        await sessions.__anext__()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_init_models_creates_tables(tmp_path, monkeypatch):
    """Test table creation against a file database"""
    monkeypatch.setattr(
        get_settings(), "DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'init.db'}"
    )
    await init_models()

    async with get_engine().connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    assert {"requests", "expenses", "reimbursements", "reimbursement_attachments"} <= set(tables)
