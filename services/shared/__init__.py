"""
Shared utilities and models for the meme war voting system.

This package contains common code used across all services:
- Data models (Team, VoteRecord, CompetitionState, enums)
- Fingerprint generation and timestamp normalization
- The VoteStore interface with PostgreSQL and in-memory backends
"""

from .models import (
    Phase,
    Stage,
    GitStages,
    Member,
    Team,
    VoteRecord,
    CompetitionState,
    client_address,
    generate_fingerprint,
    isoformat,
    slugify,
    to_utc_datetime,
    utcnow,
)
from .store import (
    VoteStore,
    StoreError,
    TeamNotFoundError,
    DuplicateVoteError,
)

__all__ = [
    'Phase',
    'Stage',
    'GitStages',
    'Member',
    'Team',
    'VoteRecord',
    'CompetitionState',
    'client_address',
    'generate_fingerprint',
    'isoformat',
    'slugify',
    'to_utc_datetime',
    'utcnow',
    'VoteStore',
    'StoreError',
    'TeamNotFoundError',
    'DuplicateVoteError',
]

__version__ = '1.0.0'
