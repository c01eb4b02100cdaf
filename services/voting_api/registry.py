"""Team registration, listing and the stats projection."""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..shared.models import GitStages, Member, Team, isoformat, slugify, utcnow
from ..shared.store import VoteStore
from .errors import ValidationError
from .metrics import teams_registered

logger = logging.getLogger(__name__)

MEMBERS_PER_TEAM = 3


class TeamRegistry:
    """Owns team records; vote counters are only read here."""

    def __init__(
        self,
        store: VoteStore,
        clock: Callable[[], datetime] = utcnow,
        repo_suffix: str = "-meme-war",
        leaderboard_size: int = 10
    ):
        self.store = store
        self.clock = clock
        self.repo_suffix = repo_suffix
        self.leaderboard_size = leaderboard_size

    async def create_team(
        self,
        team_name: Optional[str],
        department: Optional[str],
        faculty: Optional[str],
        github_username: Optional[str],
        members: Optional[List[Dict[str, Any]]]
    ) -> Dict[str, str]:
        """
        Register a team and derive its expected repository.

        Returns:
            dict: {"id", "repoName", "repoUrl"}

        Raises:
            ValidationError: A field is missing or the team is not three members
        """
        if not all(_filled(value) for value in (team_name, department, faculty, github_username)):
            raise ValidationError("Missing required fields.")
        if not isinstance(members, list) or len(members) != MEMBERS_PER_TEAM:
            raise ValidationError("Exactly 3 members are required.")

        github_username = github_username.strip()
        repo_name = f"{slugify(team_name)}{self.repo_suffix}"
        repo_url = f"https://github.com/{github_username}/{repo_name}"
        now = self.clock()

        team = Team(
            name=team_name,
            department=department,
            faculty=faculty,
            github_username=github_username,
            members=[
                _member(member, is_leader=index == 0)
                for index, member in enumerate(members)
            ],
            repo_name=repo_name,
            repo_url=repo_url,
            votes=0,
            created_at=now,
            last_updated=now,
            git_stages=GitStages(),
        )
        stored = await self.store.create_team(team)

        teams_registered.inc()
        logger.info(f"Team registered: id={stored.id}, name={team_name}, repo={repo_url}")
        return {"id": stored.id, "repoName": repo_name, "repoUrl": repo_url}

    async def team_exists(self, team_id: str) -> bool:
        return await self.store.get_team(team_id) is not None

    async def list_teams(self) -> List[Team]:
        """Teams sorted by votes, most first."""
        teams = await self.store.list_teams()
        return sorted(teams, key=lambda team: -team.votes)

    async def compute_stats(self) -> Dict[str, Any]:
        """Counts, top-N leaderboard and the countdown projection."""
        teams = await self.list_teams()
        competition = await self.store.get_competition()

        leaderboard = [
            {"rank": rank, "id": team.id, "name": team.name, "votes": team.votes}
            for rank, team in enumerate(teams[:self.leaderboard_size], start=1)
        ]

        return {
            "teamCount": len(teams),
            "memeCount": sum(1 for team in teams if team.git_stages.pushed),
            "voteCount": sum(team.votes for team in teams),
            "leaderboard": leaderboard,
            "status": competition.phase.value,
            "endTime": isoformat(competition.end_time),
            "timeRemaining": competition.time_remaining_ms(self.clock()),
        }


def _filled(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _member(data: Any, is_leader: bool) -> Member:
    data = data if isinstance(data, dict) else {}
    return Member(
        name=str(data.get("name") or ""),
        email=str(data.get("email") or ""),
        is_leader=is_leader
    )
