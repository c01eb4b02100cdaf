"""Pytest fixtures for PostgreSQL integration tests.

Connection settings come from the POSTGRES_* environment variables. Tables
are truncated before every test.
"""

import asyncio
import os
from typing import AsyncGenerator

import asyncpg
import pytest

from services.shared.database import PostgresStore


def postgres_dsn() -> str:
    return (
        f"postgresql://{os.getenv('POSTGRES_USER', 'meme_war')}:{os.getenv('POSTGRES_PASSWORD', 'meme_war')}"
        f"@{os.getenv('POSTGRES_HOST', 'localhost')}:{os.getenv('POSTGRES_PORT', '5432')}"
        f"/{os.getenv('POSTGRES_DB', 'meme_war')}"
    )


@pytest.fixture
async def pg_store() -> AsyncGenerator[PostgresStore, None]:
    """PostgresStore on an empty schema; skips when the server is down."""
    dsn = postgres_dsn()
    try:
        conn = await asyncpg.connect(dsn, timeout=2)
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
        pytest.skip(f"PostgreSQL not available: {e}")
    await conn.close()

    store = PostgresStore(dsn, min_size=1, max_size=10)
    await store.initialize()
    async with store.pool.acquire() as conn:
        await conn.execute("TRUNCATE votes, teams, competition RESTART IDENTITY CASCADE")

    yield store

    await store.close()
