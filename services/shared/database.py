"""PostgreSQL store backed by an asyncpg connection pool."""
import json
import logging
from datetime import datetime
from typing import Any, List, Optional

import asyncpg

from .models import CompetitionState, GitStages, Member, Phase, Stage, Team, to_utc_datetime
from .store import DuplicateVoteError, StoreError, TeamNotFoundError, VoteStore

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS teams (
    id              BIGSERIAL PRIMARY KEY,
    name            TEXT NOT NULL,
    department      TEXT NOT NULL DEFAULT '',
    faculty         TEXT NOT NULL DEFAULT '',
    github_username TEXT NOT NULL DEFAULT '',
    members         JSONB NOT NULL DEFAULT '[]'::jsonb,
    repo_name       TEXT NOT NULL DEFAULT '',
    repo_url        TEXT NOT NULL DEFAULT '',
    votes           INTEGER NOT NULL DEFAULT 0 CHECK (votes >= 0),
    staged          BOOLEAN NOT NULL DEFAULT FALSE,
    committed       BOOLEAN NOT NULL DEFAULT FALSE,
    pushed          BOOLEAN NOT NULL DEFAULT FALSE,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_updated    TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS votes (
    id          BIGSERIAL PRIMARY KEY,
    team_id     BIGINT NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
    fingerprint TEXT NOT NULL UNIQUE,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS competition (
    id       SMALLINT PRIMARY KEY CHECK (id = 1),
    status   TEXT NOT NULL DEFAULT 'setup',
    end_time TIMESTAMPTZ
);
"""

TEAM_COLUMNS = """
    id, name, department, faculty, github_username, members, repo_name,
    repo_url, votes, staged, committed, pushed, created_at, last_updated
"""


def _team_id(team_id: str) -> Optional[int]:
    """Team ids are BIGSERIAL; anything non-numeric cannot exist."""
    try:
        key = int(team_id)
    except (TypeError, ValueError):
        return None
    return key if 0 < key < 2 ** 63 else None


def _row_to_team(row) -> Team:
    members = row["members"]
    if isinstance(members, str):
        members = json.loads(members)
    return Team(
        id=str(row["id"]),
        name=row["name"],
        department=row["department"],
        faculty=row["faculty"],
        github_username=row["github_username"],
        members=[
            Member(name=m.get("name", ""), email=m.get("email", ""), is_leader=m.get("isLeader", False))
            for m in members
        ],
        repo_name=row["repo_name"],
        repo_url=row["repo_url"],
        votes=row["votes"],
        created_at=to_utc_datetime(row["created_at"]),
        last_updated=to_utc_datetime(row["last_updated"]),
        git_stages=GitStages(
            staged=row["staged"],
            committed=row["committed"],
            pushed=row["pushed"]
        ),
    )


class PostgresStore(VoteStore):
    """Async PostgreSQL store."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self):
        """Initialize the connection pool and create the schema."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=60
            )
            logger.info("PostgreSQL connection pool initialized successfully")

            async with self.pool.acquire() as conn:
                await conn.execute(SCHEMA)
                logger.info("PostgreSQL schema verified")

        except Exception as e:
            logger.error(f"Failed to initialize PostgreSQL connection pool: {e}")
            raise StoreError(f"Connection pool creation failed: {e}")

    async def close(self):
        """Close database connection pool."""
        try:
            if self.pool:
                await self.pool.close()
                logger.info("PostgreSQL connection pool closed successfully")
        except Exception as e:
            logger.error(f"Error closing PostgreSQL connection pool: {e}")

    async def check_health(self) -> bool:
        """Check database connection health."""
        try:
            if not self.pool:
                return False
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return False

    async def get_competition(self) -> CompetitionState:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT status, end_time FROM competition WHERE id = 1")
            if row is None:
                return CompetitionState()
            return CompetitionState(
                phase=Phase(row["status"]),
                end_time=to_utc_datetime(row["end_time"])
            )

    async def update_competition(self, **fields: Any) -> CompetitionState:
        """Merge-upsert: only the given columns change on conflict."""
        columns = {}
        if "phase" in fields:
            columns["status"] = Phase(fields["phase"]).value
        if "end_time" in fields:
            columns["end_time"] = to_utc_datetime(fields["end_time"])
        if not columns:
            return await self.get_competition()

        names = list(columns)
        placeholders = ", ".join(f"${i + 1}" for i in range(len(names)))
        updates = ", ".join(f"{name} = EXCLUDED.{name}" for name in names)
        query = f"""
            INSERT INTO competition (id, {", ".join(names)})
            VALUES (1, {placeholders})
            ON CONFLICT (id) DO UPDATE SET {updates}
            RETURNING status, end_time
        """

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, *columns.values())
            return CompetitionState(
                phase=Phase(row["status"]),
                end_time=to_utc_datetime(row["end_time"])
            )

    async def create_team(self, team: Team) -> Team:
        query = f"""
            INSERT INTO teams
            (name, department, faculty, github_username, members, repo_name,
             repo_url, votes, staged, committed, pushed, created_at, last_updated)
            VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7, 0, $8, $9, $10,
                    COALESCE($11, NOW()), COALESCE($11, NOW()))
            RETURNING {TEAM_COLUMNS}
        """
        members = json.dumps([member.to_dict() for member in team.members])
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                query,
                team.name, team.department, team.faculty, team.github_username,
                members, team.repo_name, team.repo_url,
                team.git_stages.staged, team.git_stages.committed, team.git_stages.pushed,
                to_utc_datetime(team.created_at)
            )
            return _row_to_team(row)

    async def get_team(self, team_id: str) -> Optional[Team]:
        key = _team_id(team_id)
        if key is None:
            return None
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT {TEAM_COLUMNS} FROM teams WHERE id = $1", key)
            return _row_to_team(row) if row else None

    async def list_teams(self) -> List[Team]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {TEAM_COLUMNS} FROM teams ORDER BY votes DESC, created_at, id"
            )
            return [_row_to_team(row) for row in rows]

    async def has_voted(self, fingerprint: str) -> bool:
        async with self.pool.acquire() as conn:
            found = await conn.fetchval("SELECT 1 FROM votes WHERE fingerprint = $1", fingerprint)
            return found is not None

    async def record_vote(self, team_id: str, fingerprint: str, at: datetime) -> None:
        """
        Insert the ledger entry and bump the counter in one transaction.

        The team row lock serializes votes per team; the UNIQUE index on
        fingerprint makes the second of two racing inserts a no-op.
        """
        key = _team_id(team_id)
        if key is None:
            raise TeamNotFoundError(team_id)

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                exists = await conn.fetchval("SELECT 1 FROM teams WHERE id = $1 FOR UPDATE", key)
                if exists is None:
                    raise TeamNotFoundError(team_id)

                vote_id = await conn.fetchval(
                    """
                    INSERT INTO votes (team_id, fingerprint, created_at)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (fingerprint) DO NOTHING
                    RETURNING id
                    """,
                    key, fingerprint, at
                )
                if vote_id is None:
                    raise DuplicateVoteError(fingerprint)

                await conn.execute(
                    "UPDATE teams SET votes = votes + 1, last_updated = $2 WHERE id = $1",
                    key, at
                )

    async def reset_votes(self, batch_size: int) -> int:
        """
        Zero the counters and empty the ledger.

        Both tables are locked up front, teams first as record_vote does, so
        the reset waits for in-flight votes and keeps new ones out until both
        bulk operations commit together.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        deleted = 0
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("LOCK TABLE teams, votes IN EXCLUSIVE MODE")
                await conn.execute("UPDATE teams SET votes = 0 WHERE votes <> 0")

                while True:
                    result = await conn.execute(
                        """
                        DELETE FROM votes
                        WHERE id IN (SELECT id FROM votes ORDER BY id LIMIT $1)
                        """,
                        batch_size
                    )
                    # asyncpg returns the command tag, e.g. "DELETE 400"
                    count = int(result.split()[-1])
                    deleted += count
                    if count < batch_size:
                        break

        logger.info(f"Vote ledger reset: deleted {deleted} votes")
        return deleted

    async def mark_stage(
        self,
        team_id: str,
        stage: Stage,
        at: datetime,
        live_url: Optional[str] = None
    ) -> bool:
        key = _team_id(team_id)
        if key is None:
            return False

        column = Stage(stage).value
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                f"""
                UPDATE teams
                SET {column} = TRUE,
                    repo_url = COALESCE($2, repo_url),
                    last_updated = $3
                WHERE id = $1
                """,
                key, live_url, at
            )
            return result.split()[-1] != "0"
