"""Store de tickets en memoria para tests"""
import asyncio
import dataclasses
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from services.ticket_validation.models.domain import TicketRecord, TicketStatus
from services.ticket_validation.services.ticket_store import TicketStore, TicketStoreError


class FakeTicketStore(TicketStore):
    """
    El chequeo y la escritura del update condicional no tienen await entre
    medio, así que se comportan como la escritura atómica de la base.
    """

    def __init__(self, tickets: Iterable[TicketRecord] = (), organizers: Optional[Dict[str, str]] = None):
        self.tickets: Dict[str, TicketRecord] = {t.id: t for t in tickets}
        self.organizers: Dict[str, str] = dict(organizers or {})
        self.calls: List[str] = []
        self.fail_on: Set[str] = set()
        self.delay = 0.0

    def add(self, ticket: TicketRecord):
        self.tickets[ticket.id] = ticket

    async def _enter(self, operation: str):
        self.calls.append(operation)
        if self.delay:
            await asyncio.sleep(self.delay)
        if operation in self.fail_on:
            raise TicketStoreError(f"{operation} unavailable")

    async def get_ticket(self, ticket_id: str) -> Optional[TicketRecord]:
        await self._enter("get_ticket")
        return self.tickets.get(ticket_id)

    async def conditionally_validate_ticket(self, ticket_id: str, validator_id: str, now: datetime) -> bool:
        await self._enter("conditionally_validate_ticket")
        ticket = self.tickets.get(ticket_id)
        if ticket is None or ticket.validated_at is not None or ticket.status != TicketStatus.CONFIRMED:
            return False
        self.tickets[ticket_id] = dataclasses.replace(ticket, validated_at=now, validated_by=validator_id)
        return True

    async def count_confirmed_tickets(self, event_id: str) -> int:
        await self._enter("count_confirmed_tickets")
        return len(self._confirmed(event_id))

    async def count_validated_tickets(self, event_id: str) -> int:
        await self._enter("count_validated_tickets")
        return len([t for t in self._confirmed(event_id) if t.validated_at is not None])

    async def find_tickets_by_email(self, event_id: str, email: str) -> List[TicketRecord]:
        await self._enter("find_tickets_by_email")
        email = email.strip().lower()
        return [
            t for t in self.tickets.values()
            if t.event_id == event_id and (t.attendee_email or "").lower() == email
        ]

    async def get_event_organizer(self, event_id: str) -> Optional[str]:
        await self._enter("get_event_organizer")
        return self.organizers.get(event_id)

    def _confirmed(self, event_id: str) -> List[TicketRecord]:
        return [t for t in self.tickets.values() if t.event_id == event_id and t.status == TicketStatus.CONFIRMED]
