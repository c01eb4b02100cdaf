"""In-process store used for development and the test suite."""
import asyncio
import copy
import itertools
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from .models import CompetitionState, Phase, Stage, Team, VoteRecord, to_utc_datetime
from .store import DuplicateVoteError, TeamNotFoundError, VoteStore

logger = logging.getLogger(__name__)


class MemoryStore(VoteStore):
    """Dict-backed store; one asyncio lock guards the ledger and counters."""

    def __init__(self):
        self.teams: Dict[str, Team] = {}
        self.votes: Dict[str, VoteRecord] = {}
        self.competition: Optional[CompetitionState] = None
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)

    async def check_health(self) -> bool:
        return True

    async def get_competition(self) -> CompetitionState:
        if self.competition is None:
            return CompetitionState()
        return replace(self.competition)

    async def update_competition(self, **fields: Any) -> CompetitionState:
        current = self.competition or CompetitionState()
        if "phase" in fields:
            current = replace(current, phase=Phase(fields["phase"]))
        if "end_time" in fields:
            current = replace(current, end_time=to_utc_datetime(fields["end_time"]))
        self.competition = current
        return replace(current)

    async def create_team(self, team: Team) -> Team:
        stored = copy.deepcopy(team)
        stored.id = f"team-{next(self._ids)}"
        self.teams[stored.id] = stored
        return copy.deepcopy(stored)

    async def get_team(self, team_id: str) -> Optional[Team]:
        team = self.teams.get(team_id)
        return copy.deepcopy(team) if team else None

    async def list_teams(self) -> List[Team]:
        # Registration order breaks ties
        teams = [copy.deepcopy(team) for team in self.teams.values()]
        return sorted(teams, key=lambda team: -team.votes)

    async def has_voted(self, fingerprint: str) -> bool:
        return fingerprint in self.votes

    async def record_vote(self, team_id: str, fingerprint: str, at: datetime) -> None:
        async with self._lock:
            team = self.teams.get(team_id)
            if team is None:
                raise TeamNotFoundError(team_id)
            if fingerprint in self.votes:
                raise DuplicateVoteError(fingerprint)

            self.votes[fingerprint] = VoteRecord(team_id=team_id, fingerprint=fingerprint, created_at=at)
            team.votes += 1
            team.last_updated = at

    async def reset_votes(self, batch_size: int) -> int:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        async with self._lock:
            for team in self.teams.values():
                team.votes = 0

            deleted = 0
            fingerprints = list(self.votes)
            for start in range(0, len(fingerprints), batch_size):
                for fingerprint in fingerprints[start:start + batch_size]:
                    del self.votes[fingerprint]
                deleted += len(fingerprints[start:start + batch_size])
                await asyncio.sleep(0)

            logger.info(f"Reset {len(self.teams)} team counters, deleted {deleted} votes")
            return deleted

    async def mark_stage(
        self,
        team_id: str,
        stage: Stage,
        at: datetime,
        live_url: Optional[str] = None
    ) -> bool:
        team = self.teams.get(team_id)
        if team is None:
            return False

        setattr(team.git_stages, Stage(stage).value, True)
        if live_url:
            team.repo_url = live_url
        team.last_updated = at
        return True
