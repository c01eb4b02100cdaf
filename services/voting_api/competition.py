"""Competition state: the phase and end time that gate voting."""
import logging
import math
from datetime import datetime, timedelta
from typing import Callable

from ..shared.models import CompetitionState, Phase, utcnow
from ..shared.store import VoteStore
from .errors import ValidationError

logger = logging.getLogger(__name__)


class CompetitionService:
    """
    Reads and transitions the single competition record.

    Transitions are merge-upserts and never happen on their own: an elapsed
    end time leaves the stored phase untouched and only fails the voting check.
    """

    def __init__(self, store: VoteStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    async def get(self) -> CompetitionState:
        return await self.store.get_competition()

    async def start(self, duration_minutes: float) -> CompetitionState:
        """
        Open voting for duration_minutes from now.

        Raises:
            ValidationError: If the duration is negative or not a finite number
        """
        try:
            minutes = float(duration_minutes)
        except (TypeError, ValueError):
            raise ValidationError("durationMinutes must be a number")
        if not math.isfinite(minutes) or minutes < 0:
            raise ValidationError("durationMinutes must be a non-negative number")

        end_time = self.clock() + timedelta(minutes=minutes)
        state = await self.store.update_competition(phase=Phase.RUNNING, end_time=end_time)
        logger.info(f"Competition started, ends at {end_time.isoformat()}")
        return state

    async def pause(self) -> CompetitionState:
        state = await self.store.update_competition(phase=Phase.PAUSED)
        logger.info("Competition paused")
        return state

    async def end(self) -> CompetitionState:
        state = await self.store.update_competition(phase=Phase.ENDED)
        logger.info("Competition ended")
        return state
