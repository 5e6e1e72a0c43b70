"""Pytest fixtures for integration tests.

This conftest.py provides a file-backed SQLite database (via aiosqlite) with
the matcher tables created from the ORM metadata, one database per test.
"""
import pytest_asyncio

from sourcing_matcher.db.base import Base, create_engine, create_session_factory
from sourcing_matcher.db import models  # noqa: F401  registers tables on Base.metadata


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory bound to a fresh database with all tables created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'matcher.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield create_session_factory(engine)

    await engine.dispose()
