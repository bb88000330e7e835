"""Servicio de validación de tickets"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from services.ticket_validation.models.domain import (
    Admit, AttendeeInfo, CommitResult, EventStats, MalformedPayload, Reject, RejectionReason,
    TicketRecord, TicketReference, TicketStatus, ValidationAttempt, ValidationOutcome
)
from services.ticket_validation.services import qr_codec
from services.ticket_validation.services.checkin_recorder import CheckinRecorder
from services.ticket_validation.services.scan_session import ScanSession
from services.ticket_validation.services.stats_service import StatsService
from services.ticket_validation.services.ticket_lookup import TicketLookup
from services.ticket_validation.services.ticket_store import (
    CommitFailed, LookupFailed, StatsUnavailable, TicketStore, TicketStoreError
)
from services.ticket_validation.services.validation_engine import validate

logger = logging.getLogger(__name__)

ORGANIZER_ROLE = "organizer"


class EventAccessDenied(Exception):
    """El usuario no puede validar tickets de este evento"""


async def ensure_event_access(lookup: TicketLookup, user_id: str, role: str, event_id: str):
    """
    Un organizador solo valida tickets de sus propios eventos;
    scanner, admin y coordinator operan cualquier evento.

    Raises:
        EventAccessDenied: el evento no existe o es de otro organizador
        LookupFailed: no se pudo leer el evento
    """
    if role != ORGANIZER_ROLE:
        return

    organizer_id = await lookup.fetch_event_organizer(event_id)
    if organizer_id != user_id:
        logger.warning(f"Organizer {user_id} denied at event {event_id} (owner: {organizer_id})")
        raise EventAccessDenied(f"Event {event_id} does not belong to organizer {user_id}")


def rejection_message(decision: Reject) -> str:
    """Mensaje para el personal de la puerta"""
    if decision.reason == RejectionReason.TICKET_NOT_FOUND:
        return "Ticket not found"
    if decision.reason == RejectionReason.WRONG_EVENT:
        return "Ticket is for a different event"
    if decision.reason == RejectionReason.INVALID_STATUS:
        return f"Ticket status is {decision.status}"
    if decision.reason == RejectionReason.ALREADY_CHECKED_IN:
        if decision.validated_at is not None:
            by = f" by {decision.validated_by}" if decision.validated_by else ""
            return f"Ticket already checked in at {decision.validated_at.isoformat()}{by}"
        return "Ticket already checked in"
    return "Ticket rejected"


class TicketValidationService:
    """
    Pipeline de check-in: decodificar, buscar, validar y confirmar

    Los rechazos de negocio se retornan como ValidationOutcome; solo las
    fallas del store (LookupFailed, CommitFailed, StatsUnavailable) se
    propagan como excepción para que el scanner pueda reintentar.
    """

    def __init__(
        self,
        store: TicketStore,
        session: ScanSession,
        timeout: float = 5.0,
        stats_max_retries: int = 2,
    ):
        self.store = store
        self.session = session
        self.lookup = TicketLookup(store, timeout)
        self.recorder = CheckinRecorder(store, timeout)
        self.stats = StatsService(store, timeout, max_retries=stats_max_retries)

    async def scan(self, raw_qr_text, scanner_user_id: str, current_event_id: str) -> ValidationOutcome:
        """
        Procesar el contenido de un QR escaneado en la puerta del evento

        Args:
            raw_qr_text: Texto crudo leído por el scanner
            scanner_user_id: Usuario que opera el scanner
            current_event_id: Evento configurado en el scanner

        Returns:
            ValidationOutcome admitido o rechazado
        """
        decoded = qr_codec.decode(raw_qr_text)
        if isinstance(decoded, MalformedPayload):
            logger.info(f"Malformed QR payload from scanner {scanner_user_id}: {decoded.detail}")
            outcome = ValidationOutcome.reject(
                RejectionReason.MALFORMED_PAYLOAD,
                f"Invalid QR code: {decoded.detail}. Please rescan",
            )
            self._remember(outcome, scanner_user_id, current_event_id)
            return outcome

        return await self.check_in_ticket(
            decoded.ticket_id, scanner_user_id, current_event_id, reference=decoded
        )

    async def check_in_ticket(
        self,
        ticket_id: str,
        scanner_user_id: str,
        current_event_id: str,
        reference: Optional[TicketReference] = None,
    ) -> ValidationOutcome:
        """Validar y confirmar el check-in de un ticket ya identificado"""
        record = await self.lookup.fetch(ticket_id)
        decision = validate(reference, record, current_event_id, scanner_user_id)

        if isinstance(decision, Admit):
            validated_at = datetime.now(timezone.utc)
            result = await self.recorder.commit(ticket_id, scanner_user_id, now=validated_at)
            if result == CommitResult.CONFLICT:
                # Otro scanner ganó: releer y volver a decidir, nunca asumir éxito
                record = await self.lookup.fetch(ticket_id)
                decision = validate(reference, record, current_event_id, scanner_user_id)
                if isinstance(decision, Admit):
                    logger.error(f"Ticket {ticket_id} still admissible after a conflicting commit")
                    raise CommitFailed(f"Inconsistent check-in state for ticket {ticket_id}")

        if isinstance(decision, Reject):
            outcome = self._rejected(decision, ticket_id, record, reference)
        else:
            logger.info(f"Ticket {ticket_id} checked in at event {current_event_id} by {scanner_user_id}")
            outcome = ValidationOutcome.admit(
                ticket_id,
                AttendeeInfo.from_record(record, reference),
                validated_at=validated_at,
                validated_by=scanner_user_id,
            )
            await self._refresh_stats_after_commit(current_event_id)

        self._remember(outcome, scanner_user_id, current_event_id, reference)
        return outcome

    async def manual_check_in(self, event_id: str, attendee_email: str, scanner_user_id: str) -> ValidationOutcome:
        """
        Check-in por email del asistente cuando el QR no funciona

        Pasa por las mismas reglas y el mismo commit que un escaneo.
        """
        try:
            tickets = await asyncio.wait_for(
                self.store.find_tickets_by_email(event_id, attendee_email),
                timeout=self.lookup.timeout,
            )
        except (TicketStoreError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Manual check-in search failed for event {event_id}: {e}")
            raise LookupFailed(f"Ticket search failed for event {event_id}") from e

        ticket = _pick_ticket_for_check_in(tickets)
        if ticket is None:
            outcome = ValidationOutcome.reject(
                RejectionReason.TICKET_NOT_FOUND, f"No ticket found for {attendee_email}"
            )
            self._remember(outcome, scanner_user_id, event_id)
            return outcome

        return await self.check_in_ticket(ticket.id, scanner_user_id, event_id)

    async def get_stats(self, event_id: str) -> EventStats:
        stats = await self.stats.refresh(event_id)
        if event_id == self.session.event_id:
            self.session.last_stats = stats
        return stats

    def get_recent_validations(self) -> List[ValidationAttempt]:
        return self.session.recent()

    async def _refresh_stats_after_commit(self, event_id: str):
        try:
            await self.get_stats(event_id)
        except StatsUnavailable as e:
            # El check-in ya quedó confirmado; las stats se recalculan en el próximo refresh
            logger.warning(f"Stats refresh after check-in failed: {e}")

    def _rejected(
        self,
        decision: Reject,
        ticket_id: str,
        record: Optional[TicketRecord],
        reference: Optional[TicketReference],
    ) -> ValidationOutcome:
        if decision.reason == RejectionReason.WRONG_EVENT:
            logger.warning(f"Ticket {ticket_id} scanned at the wrong event (belongs to {record.event_id})")
        else:
            logger.info(f"Ticket {ticket_id} rejected: {decision.reason.value}")

        return ValidationOutcome.reject(
            decision.reason,
            rejection_message(decision),
            ticket_id=ticket_id,
            attendee=AttendeeInfo.from_record(record, reference) if record else None,
            status=decision.status,
            validated_at=decision.validated_at,
            validated_by=decision.validated_by,
        )

    def _remember(
        self,
        outcome: ValidationOutcome,
        scanner_user_id: str,
        event_id: str,
        reference: Optional[TicketReference] = None,
    ):
        self.session.record(ValidationAttempt(
            scanner_user_id=scanner_user_id,
            scanned_event_id=event_id,
            outcome=outcome,
            reference=reference,
        ))


def _pick_ticket_for_check_in(tickets: List[TicketRecord]) -> Optional[TicketRecord]:
    """Preferir un ticket confirmado sin check-in; si no hay, el más reciente"""
    for ticket in tickets:
        if ticket.status == TicketStatus.CONFIRMED and ticket.validated_at is None:
            return ticket
    return tickets[0] if tickets else None
