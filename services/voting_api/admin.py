"""Admin controls gated by the shared admin secret."""
import hmac
import logging
from typing import Any, Dict, Optional

from ..shared.models import isoformat
from ..shared.store import VoteStore
from .cache import VoterCache
from .competition import CompetitionService
from .errors import AuthorizationError
from .metrics import admin_actions

logger = logging.getLogger(__name__)


class AdminService:
    """Phase transitions and vote reset. Every call checks the secret first."""

    def __init__(
        self,
        store: VoteStore,
        competition: CompetitionService,
        admin_secret: Optional[str],
        cache: Optional[VoterCache] = None,
        reset_batch_size: int = 400
    ):
        self.store = store
        self.competition = competition
        self.admin_secret = admin_secret
        self.cache = cache
        self.reset_batch_size = reset_batch_size

    def authorize(self, secret: Optional[str], action: str) -> None:
        """
        Raises:
            AuthorizationError: server secret unset, caller secret missing or wrong
        """
        if not self.admin_secret:
            logger.error("ADMIN_SECRET is not set; admin actions are disabled")
        elif secret and hmac.compare_digest(secret.encode("utf-8"), self.admin_secret.encode("utf-8")):
            return

        admin_actions.labels(action=action, outcome="unauthorized").inc()
        logger.warning(f"Unauthorized admin action attempted: {action}")
        raise AuthorizationError("Unauthorized")

    async def start(self, secret: Optional[str], duration_minutes: Any) -> Dict[str, Any]:
        self.authorize(secret, "start")
        state = await self.competition.start(duration_minutes)
        admin_actions.labels(action="start", outcome="ok").inc()
        return {"status": state.phase.value, "endTime": isoformat(state.end_time)}

    async def pause(self, secret: Optional[str]) -> Dict[str, Any]:
        self.authorize(secret, "pause")
        state = await self.competition.pause()
        admin_actions.labels(action="pause", outcome="ok").inc()
        return {"status": state.phase.value}

    async def end(self, secret: Optional[str]) -> Dict[str, Any]:
        self.authorize(secret, "end")
        state = await self.competition.end()
        admin_actions.labels(action="end", outcome="ok").inc()
        return {"status": state.phase.value}

    async def reset_votes(self, secret: Optional[str]) -> Dict[str, Any]:
        """Zero all counters and empty the ledger; the phase is left as is."""
        self.authorize(secret, "resetVotes")
        deleted = await self.store.reset_votes(self.reset_batch_size)
        if self.cache is not None:
            await self.cache.clear()
        admin_actions.labels(action="resetVotes", outcome="ok").inc()
        logger.info(f"Votes reset by admin, {deleted} ledger entries removed")
        return {"message": "Votes reset"}
