"""Transición única de check-in"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from services.ticket_validation.models.domain import CommitResult
from services.ticket_validation.services.ticket_store import CommitFailed, TicketStore, TicketStoreError

logger = logging.getLogger(__name__)


class CheckinRecorder:
    """
    Único camino que escribe validated_at/validated_by.

    La exclusión mutua entre scanners la da el update condicional del store;
    aquí no hay locks.
    """

    def __init__(self, store: TicketStore, timeout: float):
        self.store = store
        self.timeout = timeout

    async def commit(self, ticket_id: str, scanner_user_id: str, now: Optional[datetime] = None) -> CommitResult:
        now = now or datetime.now(timezone.utc)
        try:
            updated = await asyncio.wait_for(
                self.store.conditionally_validate_ticket(ticket_id, scanner_user_id, now),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Check-in commit timed out after {self.timeout}s: {ticket_id}")
            raise CommitFailed(f"Check-in commit timed out: {ticket_id}") from e
        except (TicketStoreError, OSError) as e:
            logger.error(f"Check-in commit failed for {ticket_id}: {e}")
            raise CommitFailed(f"Check-in commit failed: {ticket_id}") from e

        if not updated:
            logger.info(f"Check-in conflict for ticket {ticket_id}: already validated by another commit")
            return CommitResult.CONFLICT

        return CommitResult.COMMITTED
