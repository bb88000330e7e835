"""Acceso al store de tickets (colaborador externo)"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.database.models import Event, Ticket
from services.ticket_validation.models.domain import TicketRecord, TicketStatus


class TicketStoreError(Exception):
    """Falla de transporte o del store; siempre reintentable"""
    retryable = True


class LookupFailed(TicketStoreError):
    """No se pudo leer el ticket (timeout, red o datos corruptos)"""


class CommitFailed(TicketStoreError):
    """No se pudo confirmar el check-in; el resultado es desconocido"""


class StatsUnavailable(TicketStoreError):
    pass


class TicketStore(ABC):
    """Operaciones que el check-in necesita del store de tickets"""

    @abstractmethod
    async def get_ticket(self, ticket_id: str) -> Optional[TicketRecord]:
        ...

    @abstractmethod
    async def conditionally_validate_ticket(self, ticket_id: str, validator_id: str, now: datetime) -> bool:
        """
        Marcar el ticket como validado solo si validated_at sigue en NULL.

        Returns:
            True si el update afectó una fila, False si otro scanner ganó
        """

    @abstractmethod
    async def count_confirmed_tickets(self, event_id: str) -> int:
        ...

    @abstractmethod
    async def count_validated_tickets(self, event_id: str) -> int:
        ...

    @abstractmethod
    async def find_tickets_by_email(self, event_id: str, email: str) -> List[TicketRecord]:
        ...

    @abstractmethod
    async def get_event_organizer(self, event_id: str) -> Optional[str]:
        """Organizador dueño del evento, o None si el evento no existe"""


def _to_record(ticket: Ticket, event_title: Optional[str]) -> TicketRecord:
    return TicketRecord(
        id=ticket.id,
        event_id=ticket.event_id,
        status=ticket.status,
        holder_id=ticket.holder_id,
        ticket_type=ticket.ticket_type,
        validated_at=ticket.validated_at,
        validated_by=ticket.validated_by,
        amount=ticket.amount,
        currency=ticket.currency,
        attendee_name=ticket.attendee_name,
        attendee_email=ticket.attendee_email,
        event_title=event_title,
        created_at=ticket.created_at,
    )


class SqlTicketStore(TicketStore):
    """Store de tickets sobre la base de datos relacional"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_ticket(self, ticket_id: str) -> Optional[TicketRecord]:
        stmt = (
            select(Ticket, Event.title)
            .outerjoin(Event, Ticket.event_id == Event.id)
            .where(Ticket.id == ticket_id)
            # Releer siempre desde la base: la sesión puede tener una copia vieja
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.db.execute(stmt)
            row = result.first()
        except SQLAlchemyError as e:
            raise TicketStoreError(f"Error fetching ticket {ticket_id}") from e

        if row is None:
            return None
        ticket, event_title = row
        return _to_record(ticket, event_title)

    async def conditionally_validate_ticket(self, ticket_id: str, validator_id: str, now: datetime) -> bool:
        # Un solo UPDATE condicional: la base de datos serializa los scanners concurrentes
        stmt = (
            update(Ticket)
            .where(
                Ticket.id == ticket_id,
                Ticket.validated_at.is_(None),
                Ticket.status == TicketStatus.CONFIRMED.value,
            )
            .values(validated_at=now, validated_by=validator_id)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise TicketStoreError(f"Error validating ticket {ticket_id}") from e

        return result.rowcount == 1

    async def count_confirmed_tickets(self, event_id: str) -> int:
        stmt = select(func.count(Ticket.id)).where(
            Ticket.event_id == event_id,
            Ticket.status == TicketStatus.CONFIRMED.value,
        )
        return await self._scalar_count(stmt)

    async def count_validated_tickets(self, event_id: str) -> int:
        stmt = select(func.count(Ticket.id)).where(
            Ticket.event_id == event_id,
            Ticket.status == TicketStatus.CONFIRMED.value,
            Ticket.validated_at.is_not(None),
        )
        return await self._scalar_count(stmt)

    async def find_tickets_by_email(self, event_id: str, email: str) -> List[TicketRecord]:
        stmt = (
            select(Ticket, Event.title)
            .outerjoin(Event, Ticket.event_id == Event.id)
            .where(
                Ticket.event_id == event_id,
                func.lower(Ticket.attendee_email) == email.strip().lower(),
            )
            .order_by(Ticket.created_at.desc())
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.db.execute(stmt)
            rows = result.all()
        except SQLAlchemyError as e:
            raise TicketStoreError(f"Error searching tickets for event {event_id}") from e

        return [_to_record(ticket, event_title) for ticket, event_title in rows]

    async def get_event_organizer(self, event_id: str) -> Optional[str]:
        try:
            result = await self.db.execute(select(Event.organizer_id).where(Event.id == event_id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise TicketStoreError(f"Error fetching event {event_id}") from e

    async def _scalar_count(self, stmt) -> int:
        try:
            result = await self.db.execute(stmt)
            return result.scalar() or 0
        except SQLAlchemyError as e:
            raise TicketStoreError("Error counting tickets") from e
