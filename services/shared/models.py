"""
Shared data models and utilities for the meme war voting system.

This module contains:
- Team, VoteRecord and CompetitionState: records persisted by the stores
- Fingerprint generation for one-vote-per-voter enforcement
- Timestamp normalization used at every store boundary
"""

import hashlib
import hmac
import re
import unicodedata
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List


class Phase(str, Enum):
    """Lifecycle phase of the competition."""
    SETUP = "setup"
    RUNNING = "running"
    PAUSED = "paused"
    ENDED = "ended"


class Stage(str, Enum):
    """Publication stages a team moves through."""
    STAGED = "staged"
    COMMITTED = "committed"
    PUSHED = "pushed"


# Values above this are taken as epoch milliseconds rather than seconds
_EPOCH_MS_THRESHOLD = 1e11


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc_datetime(value: Any) -> Optional[datetime]:
    """
    Normalize any supported timestamp shape to an aware UTC datetime.

    Accepted shapes:
    - datetime (naive values are taken as UTC)
    - int/float epoch (seconds, or milliseconds when above 1e11)
    - ISO-8601 string, with or without a trailing 'Z'
    - store-native objects exposing to_datetime(), ToDatetime() or timestamp()

    Args:
        value: Timestamp in any of the shapes above, or None

    Returns:
        datetime: Aware UTC datetime, or None when value is None

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, bool):
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    if isinstance(value, (int, float)):
        seconds = value / 1000.0 if abs(value) > _EPOCH_MS_THRESHOLD else float(value)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Unsupported timestamp string: {value!r}")
        return to_utc_datetime(parsed)

    for method in ("to_datetime", "ToDatetime"):
        converter = getattr(value, method, None)
        if callable(converter):
            return to_utc_datetime(converter())

    timestamp = getattr(value, "timestamp", None)
    if callable(timestamp):
        return to_utc_datetime(float(timestamp()))

    raise ValueError(f"Unsupported timestamp value: {value!r}")


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """Render a datetime as ISO-8601 with a 'Z' suffix."""
    if value is None:
        return None
    return to_utc_datetime(value).isoformat().replace("+00:00", "Z")


def client_address(forwarded_for: Optional[str], direct_address: Optional[str]) -> str:
    """
    Resolve the voter's network address.

    The first entry of X-Forwarded-For wins when present, since the service
    normally runs behind a proxy.
    """
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return direct_address or ""


def generate_fingerprint(address: str, user_agent: str, salt: str) -> str:
    """
    Generate the keyed voter fingerprint.

    HMAC-SHA256 over "address::user_agent" keyed by the server-side salt.
    Rotating the salt invalidates every earlier fingerprint.

    Args:
        address: Client network address
        user_agent: Client User-Agent header
        salt: Server-side secret

    Returns:
        str: 64 character hexadecimal digest

    Raises:
        ValueError: If the salt is empty
    """
    if not salt:
        raise ValueError("Fingerprint salt is not configured")
    message = f"{address or ''}::{user_agent or ''}"
    return hmac.new(salt.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def slugify(text: str) -> str:
    """Lower-case ASCII slug with runs of other characters collapsed to '-'."""
    normalized = unicodedata.normalize("NFKD", text or "")
    stripped = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", stripped)
    return slug.strip("-").lower()


@dataclass
class GitStages:
    """Monotonic publication flags of a team repository."""
    staged: bool = False
    committed: bool = False
    pushed: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


@dataclass
class Member:
    name: str = ""
    email: str = ""
    is_leader: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "email": self.email, "isLeader": self.is_leader}


@dataclass
class Team:
    """
    Registered team.

    Attributes:
        id: Store-assigned identifier
        name: Display name
        department: Department of the team
        faculty: Faculty of the team
        github_username: Owner of the team repository
        members: Exactly three members, the first one leads
        repo_name: Expected repository name
        repo_url: Repository URL, replaced by the live page once pushed
        votes: Denormalized count of ledger entries for this team
        created_at: Registration time
        last_updated: Last vote or stage change
        git_stages: Publication flags
    """
    name: str
    department: str = ""
    faculty: str = ""
    github_username: str = ""
    members: List[Member] = field(default_factory=list)
    repo_name: str = ""
    repo_url: str = ""
    votes: int = 0
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    git_stages: GitStages = field(default_factory=GitStages)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape served by the API."""
        return {
            "id": self.id,
            "name": self.name,
            "department": self.department,
            "faculty": self.faculty,
            "githubUsername": self.github_username,
            "members": [member.to_dict() for member in self.members],
            "repoName": self.repo_name,
            "repoUrl": self.repo_url,
            "votes": self.votes,
            "createdAt": isoformat(self.created_at),
            "lastUpdated": isoformat(self.last_updated),
            "gitStages": self.git_stages.to_dict(),
        }


@dataclass
class VoteRecord:
    """Ledger entry for one accepted vote."""
    team_id: str
    fingerprint: str
    created_at: datetime


@dataclass
class CompetitionState:
    """Current phase and end time of the competition."""
    phase: Phase = Phase.SETUP
    end_time: Optional[datetime] = None

    def has_expired(self, now: datetime) -> bool:
        """True when an end time is set and is not in the future."""
        return self.end_time is not None and self.end_time <= now

    def time_remaining_ms(self, now: datetime) -> Optional[int]:
        """Milliseconds until the end time, floored at zero."""
        if self.end_time is None:
            return None
        remaining = (self.end_time - now).total_seconds() * 1000
        return max(int(remaining), 0)


