"""Lectura del ticket referenciado por un escaneo"""
import asyncio
import logging
from typing import Optional

from services.ticket_validation.models.domain import TicketRecord
from services.ticket_validation.services.ticket_store import LookupFailed, TicketStore, TicketStoreError

logger = logging.getLogger(__name__)


class TicketLookup:
    """Resuelve un ticket_id al registro actual del store"""

    def __init__(self, store: TicketStore, timeout: float):
        self.store = store
        self.timeout = timeout

    async def fetch(self, ticket_id: str) -> Optional[TicketRecord]:
        """
        Obtener el ticket por ID, sin filtrar por evento

        Returns:
            TicketRecord, o None si el ticket no existe

        Raises:
            LookupFailed: timeout, error del store o registro sin evento
        """
        try:
            record = await asyncio.wait_for(self.store.get_ticket(ticket_id), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Ticket lookup timed out after {self.timeout}s: {ticket_id}")
            raise LookupFailed(f"Ticket lookup timed out: {ticket_id}") from e
        except (TicketStoreError, OSError) as e:
            logger.error(f"Ticket lookup failed for {ticket_id}: {e}")
            raise LookupFailed(f"Ticket lookup failed: {ticket_id}") from e

        if record is None:
            return None

        # Sin evento no hay forma de aplicar la regla de evento equivocado
        if not record.event_id:
            logger.error(f"Ticket {ticket_id} has no event_id, refusing to validate")
            raise LookupFailed(f"Ticket {ticket_id} has no event")

        return record

    async def fetch_event_organizer(self, event_id: str) -> Optional[str]:
        """Dueño del evento; None si el evento no existe"""
        try:
            return await asyncio.wait_for(self.store.get_event_organizer(event_id), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Event lookup timed out after {self.timeout}s: {event_id}")
            raise LookupFailed(f"Event lookup timed out: {event_id}") from e
        except (TicketStoreError, OSError) as e:
            logger.error(f"Event lookup failed for {event_id}: {e}")
            raise LookupFailed(f"Event lookup failed: {event_id}") from e
