"""
Vote casting.

One vote per fingerprint for the lifetime of a competition cycle. The order
of checks is fixed: team id, phase, end time, fingerprint, duplicate lookup,
then the atomic ledger insert plus counter increment in the store.

With a voter cache, only cache hits are looked up in the ledger; a miss goes
straight to the insert, whose unique fingerprint rejects repeat voters.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from ..shared.models import Phase, generate_fingerprint, utcnow
from ..shared.store import DuplicateVoteError, TeamNotFoundError, VoteStore
from .cache import VoterCache
from .errors import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from .metrics import vote_counter, vote_rejections

logger = logging.getLogger(__name__)

ALREADY_VOTED = "You have already voted."


@dataclass
class RequestMetadata:
    """What the fingerprint is derived from."""
    address: str
    user_agent: str


class VotingService:
    """Orchestrates fingerprinting, the competition check and the ledger write."""

    def __init__(
        self,
        store: VoteStore,
        salt: Optional[str],
        cache: Optional[VoterCache] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.salt = salt
        self.cache = cache
        self.clock = clock

    def _reject(self, reason: str, error: Exception) -> Exception:
        vote_rejections.labels(reason=reason).inc()
        return error

    async def cast_vote(self, team_id: Optional[str], metadata: RequestMetadata) -> Dict[str, str]:
        """
        Cast one vote for team_id.

        Raises:
            ValidationError: team_id missing or empty
            StateError: competition not running, or its end time has passed
            ConfigurationError: fingerprint salt not configured
            ConflictError: this fingerprint already voted
            NotFoundError: team does not exist
        """
        if not isinstance(team_id, str) or not team_id.strip():
            raise self._reject("bad_request", ValidationError("teamId required"))
        team_id = team_id.strip()

        competition = await self.store.get_competition()
        now = self.clock()
        if competition.phase != Phase.RUNNING:
            raise self._reject("not_active", StateError("Voting is not active."))
        if competition.has_expired(now):
            raise self._reject("ended", StateError("Voting period has ended."))

        if not self.salt:
            logger.critical("HASH_SALT secret is not set; refusing all votes")
            raise self._reject("configuration", ConfigurationError("Server not configured."))
        fingerprint = generate_fingerprint(metadata.address, metadata.user_agent, self.salt)

        if self.cache is None or await self.cache.has_voted(fingerprint):
            if await self.store.has_voted(fingerprint):
                raise self._reject("duplicate", ConflictError(ALREADY_VOTED))
            if self.cache is not None:
                # Remembered by a vote that committed just before a reset
                logger.info(f"Dropping stale cached fingerprint {fingerprint[:12]}")
                await self.cache.forget(fingerprint)

        try:
            await self.store.record_vote(team_id, fingerprint, now)
        except DuplicateVoteError:
            # Lost the race against a concurrent vote with the same fingerprint
            raise self._reject("duplicate", ConflictError(ALREADY_VOTED))
        except TeamNotFoundError:
            raise self._reject("team_not_found", NotFoundError("Team not found"))

        if self.cache is not None:
            await self.cache.remember(fingerprint)

        vote_counter.inc()
        logger.info(f"Vote recorded: team={team_id}, fingerprint={fingerprint[:12]}")
        return {"message": "Vote recorded"}
