"""Storage interface shared by the voting API and the repo checker."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional

from .models import CompetitionState, Stage, Team


class StoreError(Exception):
    """Custom exception for storage errors."""
    pass


class TeamNotFoundError(StoreError):
    """Raised when a vote targets a team that does not exist."""
    pass


class DuplicateVoteError(StoreError):
    """Raised when the fingerprint already has a ledger entry."""
    pass


class VoteStore(ABC):
    """
    Persistence for teams, the vote ledger and the competition record.

    record_vote and reset_votes are the only operations touching vote
    counters, and both must be all-or-nothing.
    """

    async def initialize(self):
        """Open connections and create the schema if needed."""

    async def close(self):
        """Release connections."""

    @abstractmethod
    async def check_health(self) -> bool:
        ...

    @abstractmethod
    async def get_competition(self) -> CompetitionState:
        """Return the competition record, or the setup default when absent."""

    @abstractmethod
    async def update_competition(self, **fields: Any) -> CompetitionState:
        """
        Merge-upsert the competition record.

        Only the given fields ('phase', 'end_time') are written; the rest are
        preserved. The record is created on first use.
        """

    @abstractmethod
    async def create_team(self, team: Team) -> Team:
        """Persist a new team and return it with its assigned id."""

    @abstractmethod
    async def get_team(self, team_id: str) -> Optional[Team]:
        ...

    @abstractmethod
    async def list_teams(self) -> List[Team]:
        """All teams, most votes first."""

    @abstractmethod
    async def has_voted(self, fingerprint: str) -> bool:
        ...

    @abstractmethod
    async def record_vote(self, team_id: str, fingerprint: str, at: datetime) -> None:
        """
        Atomically insert a ledger entry and increment the team counter.

        Raises:
            TeamNotFoundError: If the team does not exist
            DuplicateVoteError: If the fingerprint already voted
        """

    @abstractmethod
    async def reset_votes(self, batch_size: int) -> int:
        """
        Zero every team counter and delete every ledger entry.

        Ledger deletes run in chunks of at most batch_size records.

        Returns:
            int: Number of ledger entries deleted
        """

    @abstractmethod
    async def mark_stage(
        self,
        team_id: str,
        stage: Stage,
        at: datetime,
        live_url: Optional[str] = None
    ) -> bool:
        """
        Set a stage flag to true, never back to false.

        Returns:
            bool: True if the team exists
        """
