"""Pytest fixtures for the voting API tests.

Services are wired against the in-memory store and a controllable clock, so
every test starts from an empty competition in the setup phase.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict

import httpx
import pytest

from services.shared.memory_store import MemoryStore
from services.voting_api.admin import AdminService
from services.voting_api.competition import CompetitionService
from services.voting_api.config import Settings
from services.voting_api.main import create_app, limiter
from services.voting_api.registry import TeamRegistry
from services.voting_api.voting import RequestMetadata, VotingService

ADMIN_SECRET = "test-admin-secret"
HASH_SALT = "test-hash-salt"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = None):
        self.now = now or datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingCache:
    """Stand-in for VoterCache that keeps fingerprints in a set."""

    def __init__(self):
        self.fingerprints = set()
        self.cleared = 0

    async def initialize(self):
        pass

    async def has_voted(self, fingerprint: str) -> bool:
        return fingerprint in self.fingerprints

    async def remember(self, fingerprint: str) -> None:
        self.fingerprints.add(fingerprint)

    async def forget(self, fingerprint: str) -> None:
        self.fingerprints.discard(fingerprint)

    async def clear(self) -> None:
        self.fingerprints.clear()
        self.cleared += 1

    async def check_health(self) -> bool:
        return True

    async def close(self):
        pass


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def settings() -> Settings:
    """Settings for an isolated app: memory store, no Redis."""
    return Settings(
        ADMIN_SECRET=ADMIN_SECRET,
        HASH_SALT=HASH_SALT,
        STORE_BACKEND="memory",
        REDIS_ENABLED=False,
        RESET_BATCH_SIZE=3,
    )


@pytest.fixture
def competition(store, clock) -> CompetitionService:
    return CompetitionService(store, clock=clock)


@pytest.fixture
def registry(store, clock) -> TeamRegistry:
    return TeamRegistry(store, clock=clock)


@pytest.fixture
def voting(store, clock) -> VotingService:
    return VotingService(store, salt=HASH_SALT, clock=clock)


@pytest.fixture
def admin(store, competition) -> AdminService:
    return AdminService(store, competition, admin_secret=ADMIN_SECRET, reset_batch_size=3)


@pytest.fixture
def voter():
    """Factory for request metadata of distinct voters."""
    def _voter(index: int = 1, user_agent: str = "Mozilla/5.0 (test)") -> RequestMetadata:
        return RequestMetadata(address=f"10.0.0.{index}", user_agent=user_agent)

    return _voter


@pytest.fixture
def team_payload() -> Dict:
    """Valid registration payload."""
    return {
        "teamName": "Merge Conflict Maniacs",
        "department": "Computer Science",
        "faculty": "Science",
        "githubUsername": "octocat",
        "members": [
            {"name": "Ada", "email": "ada@example.com"},
            {"name": "Linus", "email": "linus@example.com"},
            {"name": "Grace", "email": "grace@example.com"},
        ],
    }


@pytest.fixture
def register(registry, team_payload):
    """Factory registering a team by name and returning its id."""
    async def _register(name: str) -> str:
        created = await registry.create_team(
            team_name=name,
            department=team_payload["department"],
            faculty=team_payload["faculty"],
            github_username=team_payload["githubUsername"],
            members=team_payload["members"],
        )
        return created["id"]

    return _register


@pytest.fixture
def app(settings, store, clock):
    limiter.enabled = False
    return create_app(settings, store=store, clock=clock)


@pytest.fixture
async def api_client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client talking to the app in-process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return {"x-admin-secret": ADMIN_SECRET}


@pytest.fixture
def voter_headers():
    """Factory for headers of distinct voters behind the proxy."""
    def _headers(index: int = 1) -> Dict[str, str]:
        return {"x-forwarded-for": f"203.0.113.{index}", "user-agent": "pytest-browser"}

    return _headers


@pytest.fixture
def recording_cache() -> RecordingCache:
    return RecordingCache()
