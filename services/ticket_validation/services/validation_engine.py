"""Reglas de admisión de un ticket escaneado"""
from typing import Optional

from services.ticket_validation.models.domain import (
    Admit, Decision, Reject, RejectionReason, TicketRecord, TicketReference, TicketStatus
)


def validate(
    reference: Optional[TicketReference],
    record: Optional[TicketRecord],
    requesting_event_id: str,
    requesting_scanner_id: str,
) -> Decision:
    """
    Decidir si el ticket puede entrar

    Las reglas se evalúan en orden y la primera que falla define el motivo:
    existencia, evento, estado y por último check-in previo. Un ticket de otro
    evento se rechaza como WRONG_EVENT aunque además esté cancelado o ya usado.

    Función pura: no hace I/O ni modifica el registro.
    """
    if record is None:
        return Reject(RejectionReason.TICKET_NOT_FOUND)

    if record.event_id != requesting_event_id:
        return Reject(RejectionReason.WRONG_EVENT, status=record.status)

    if record.status != TicketStatus.CONFIRMED:
        return Reject(RejectionReason.INVALID_STATUS, status=record.status)

    if record.validated_at is not None:
        return Reject(
            RejectionReason.ALREADY_CHECKED_IN,
            status=record.status,
            validated_at=record.validated_at,
            validated_by=record.validated_by,
        )

    return Admit()
