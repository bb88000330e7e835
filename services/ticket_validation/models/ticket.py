"""Modelos Pydantic para validación de tickets"""
from pydantic import BaseModel, EmailStr, Field
from typing import Any, List, Optional
from datetime import datetime
from decimal import Decimal

from services.ticket_validation.models.domain import (
    AttendeeInfo, EventStats, TicketRecord, ValidationAttempt, ValidationOutcome
)


class ScanRequest(BaseModel):
    """Contenido crudo leído por el scanner óptico"""
    # Sin validar aquí: el codec decide y el intento queda registrado
    qr_data: Any
    event_id: str = Field(min_length=1)


class TicketCheckInRequest(BaseModel):
    """Check-in ingresando el ID del ticket a mano"""
    ticket_id: str = Field(min_length=1)
    event_id: str = Field(min_length=1)


class ManualCheckInRequest(BaseModel):
    """Check-in por email cuando el QR no se puede leer"""
    event_id: str = Field(min_length=1)
    attendee_email: EmailStr


class AttendeeResponse(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    ticket_type: Optional[str] = None
    event_title: Optional[str] = None
    purchase_date: Optional[datetime] = None

    @classmethod
    def from_attendee(cls, attendee: Optional[AttendeeInfo]) -> Optional["AttendeeResponse"]:
        if attendee is None:
            return None
        return cls(
            name=attendee.name,
            email=attendee.email,
            ticket_type=attendee.ticket_type,
            event_title=attendee.event_title,
            purchase_date=attendee.purchase_date,
        )


class ScanResponse(BaseModel):
    valid: bool
    message: str
    ticket_id: Optional[str] = None
    reason: Optional[str] = None
    status: Optional[str] = None
    validated_at: Optional[datetime] = None
    validated_by: Optional[str] = None
    attendee: Optional[AttendeeResponse] = None

    @classmethod
    def from_outcome(cls, outcome: ValidationOutcome) -> "ScanResponse":
        return cls(
            valid=outcome.admitted,
            message=outcome.message,
            ticket_id=outcome.ticket_id,
            reason=outcome.reason.value if outcome.reason else None,
            status=outcome.status,
            validated_at=outcome.validated_at,
            validated_by=outcome.validated_by,
            attendee=AttendeeResponse.from_attendee(outcome.attendee),
        )


class EventStatsResponse(BaseModel):
    event_id: str
    total_confirmed_tickets: int
    checked_in: int
    pending: int

    @classmethod
    def from_stats(cls, event_id: str, stats: EventStats) -> "EventStatsResponse":
        return cls(
            event_id=event_id,
            total_confirmed_tickets=stats.total_confirmed_tickets,
            checked_in=stats.checked_in,
            pending=stats.pending,
        )


class ValidationAttemptResponse(BaseModel):
    timestamp: datetime
    scanner_user_id: str
    scanned_event_id: str
    outcome: ScanResponse

    @classmethod
    def from_attempt(cls, attempt: ValidationAttempt) -> "ValidationAttemptResponse":
        return cls(
            timestamp=attempt.timestamp,
            scanner_user_id=attempt.scanner_user_id,
            scanned_event_id=attempt.scanned_event_id,
            outcome=ScanResponse.from_outcome(attempt.outcome),
        )


class RecentValidationsResponse(BaseModel):
    validations: List[ValidationAttemptResponse]


class TicketResponse(BaseModel):
    id: str
    event_id: Optional[str] = None
    event_title: Optional[str] = None
    holder_id: Optional[str] = None
    ticket_type: Optional[str] = None
    status: str
    validated_at: Optional[datetime] = None
    validated_by: Optional[str] = None
    amount: Decimal
    currency: str
    attendee_name: Optional[str] = None
    attendee_email: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: TicketRecord) -> "TicketResponse":
        return cls(
            id=record.id,
            event_id=record.event_id,
            event_title=record.event_title,
            holder_id=record.holder_id,
            ticket_type=record.ticket_type,
            status=record.status,
            validated_at=record.validated_at,
            validated_by=record.validated_by,
            amount=record.amount,
            currency=record.currency,
            attendee_name=record.attendee_name,
            attendee_email=record.attendee_email,
            created_at=record.created_at,
        )
