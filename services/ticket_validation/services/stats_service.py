"""Estadísticas de check-in por evento"""
import asyncio
import logging

from services.ticket_validation.models.domain import EventStats
from services.ticket_validation.services.ticket_store import StatsUnavailable, TicketStore, TicketStoreError
from shared.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)


class StatsService:
    """Conteos de tickets confirmados e ingresados, siempre recalculados"""

    def __init__(self, store: TicketStore, timeout: float, max_retries: int = 2):
        self.store = store
        self.timeout = timeout
        self.max_retries = max_retries

    async def refresh(self, event_id: str) -> EventStats:
        """
        Recalcular las estadísticas del evento desde el store

        Raises:
            StatsUnavailable: el store no respondió tras los reintentos
        """
        try:
            return await retry_with_backoff(
                lambda: self._count(event_id),
                max_retries=self.max_retries,
                exceptions=(TicketStoreError, OSError, asyncio.TimeoutError),
            )
        except (TicketStoreError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Stats refresh failed for event {event_id}: {e}")
            raise StatsUnavailable(f"Stats unavailable for event {event_id}") from e

    async def _count(self, event_id: str) -> EventStats:
        total = await asyncio.wait_for(self.store.count_confirmed_tickets(event_id), timeout=self.timeout)
        checked_in = await asyncio.wait_for(self.store.count_validated_tickets(event_id), timeout=self.timeout)
        # Las dos consultas no son atómicas; un check-in entre ambas no puede dejar pending negativo
        return EventStats(total_confirmed_tickets=total, checked_in=min(checked_in, total))
