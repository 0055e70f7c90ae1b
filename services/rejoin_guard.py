import logging
import time
from enum import Enum
from typing import Callable

from core.errors import RestrictionNotFound
from models.restrictions import RestrictionKey
from services.executor import ActionExecutor
from services.restriction_store import RestrictionStore

logger = logging.getLogger(__name__)


class RejoinOutcome(str, Enum):
    IGNORED = "ignored"
    REAPPLIED = "reapplied"
    CLEARED = "cleared"
    FAILED = "failed"


class RejoinGuard:
    """Re-enforces mutes that a member tried to shed by leaving and rejoining."""

    def __init__(
        self,
        store: RestrictionStore,
        executor: ActionExecutor,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.executor = executor
        self.clock = clock

    async def handle_rejoin(self, subject_id: int, scope_id: int) -> RejoinOutcome:
        key = RestrictionKey(subject_id, scope_id)
        try:
            entry = self.store.entry(key)
        except RestrictionNotFound:
            return RejoinOutcome.IGNORED

        if not entry.is_expired(self.clock()):
            result = await self.executor.apply_mute(subject_id, scope_id, reason="Mute re-applied on rejoin")
            if not result.ok:
                return RejoinOutcome.FAILED
            logger.info("Re-applied mute for %s in %s after rejoin", subject_id, scope_id)
            return RejoinOutcome.REAPPLIED

        result = await self.executor.lift_mute(entry)
        if not result.ok:
            return RejoinOutcome.FAILED
        self.store.remove(key, expected_expires_at=entry.expires_at)
        logger.info("Cleared expired mute for %s in %s on rejoin", subject_id, scope_id)
        return RejoinOutcome.CLEARED
