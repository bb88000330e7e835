"""Tipos de dominio del check-in de tickets"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, StrictStr


class TicketStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class RejectionReason(str, Enum):
    MALFORMED_PAYLOAD = "malformed_payload"
    TICKET_NOT_FOUND = "ticket_not_found"
    WRONG_EVENT = "wrong_event"
    INVALID_STATUS = "invalid_status"
    ALREADY_CHECKED_IN = "already_checked_in"


class CommitResult(str, Enum):
    COMMITTED = "committed"
    CONFLICT = "conflict"  # Otro commit concurrente ganó la carrera


class TicketReference(BaseModel):
    """Referencia a un ticket tal como viaja en el QR (claves camelCase)"""
    ticket_id: StrictStr = Field(alias="ticketId", min_length=1)
    event_id: StrictStr = Field(alias="eventId", min_length=1)
    event_title: StrictStr = Field(alias="eventTitle", min_length=1)
    ticket_type: StrictStr = Field(alias="ticketType", min_length=1)
    holder_id: Optional[StrictStr] = Field(default=None, alias="userId")
    issued_at: Optional[StrictStr] = Field(default=None, alias="timestamp")

    class Config:
        frozen = True
        populate_by_name = True
        str_strip_whitespace = True
        extra = "ignore"


@dataclass(frozen=True)
class MalformedPayload:
    """El contenido escaneado no es una referencia de ticket reconocible"""
    detail: str
    reason: RejectionReason = RejectionReason.MALFORMED_PAYLOAD


@dataclass(frozen=True)
class TicketRecord:
    """Ticket persistido; este servicio solo lo lee (salvo el check-in)"""
    id: str
    event_id: Optional[str]
    status: str
    holder_id: Optional[str] = None
    ticket_type: Optional[str] = None
    validated_at: Optional[datetime] = None
    validated_by: Optional[str] = None
    amount: Decimal = Decimal("0")
    currency: str = "USD"
    attendee_name: Optional[str] = None
    attendee_email: Optional[str] = None
    event_title: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Admit:
    pass


@dataclass(frozen=True)
class Reject:
    reason: RejectionReason
    status: Optional[str] = None
    validated_at: Optional[datetime] = None
    validated_by: Optional[str] = None


Decision = Union[Admit, Reject]


@dataclass(frozen=True)
class AttendeeInfo:
    name: Optional[str]
    email: Optional[str]
    ticket_type: Optional[str]
    event_title: Optional[str]
    purchase_date: Optional[datetime]

    @classmethod
    def from_record(cls, record: TicketRecord, reference: Optional[TicketReference] = None) -> "AttendeeInfo":
        return cls(
            name=record.attendee_name,
            email=record.attendee_email,
            ticket_type=record.ticket_type or (reference.ticket_type if reference else None),
            event_title=record.event_title or (reference.event_title if reference else None),
            purchase_date=record.created_at,
        )


@dataclass(frozen=True)
class ValidationOutcome:
    """Resultado de un escaneo que recibe la UI del scanner"""
    admitted: bool
    message: str
    ticket_id: Optional[str] = None
    reason: Optional[RejectionReason] = None
    attendee: Optional[AttendeeInfo] = None
    status: Optional[str] = None
    validated_at: Optional[datetime] = None
    validated_by: Optional[str] = None

    @classmethod
    def admit(cls, ticket_id: str, attendee: AttendeeInfo, validated_at: Optional[datetime] = None,
              validated_by: Optional[str] = None) -> "ValidationOutcome":
        return cls(
            admitted=True,
            message="Ticket validated successfully",
            ticket_id=ticket_id,
            attendee=attendee,
            status=TicketStatus.CONFIRMED.value,
            validated_at=validated_at,
            validated_by=validated_by,
        )

    @classmethod
    def reject(cls, reason: RejectionReason, message: str, ticket_id: Optional[str] = None,
               attendee: Optional[AttendeeInfo] = None, status: Optional[str] = None,
               validated_at: Optional[datetime] = None,
               validated_by: Optional[str] = None) -> "ValidationOutcome":
        return cls(
            admitted=False,
            message=message,
            ticket_id=ticket_id,
            reason=reason,
            attendee=attendee,
            status=status,
            validated_at=validated_at,
            validated_by=validated_by,
        )


@dataclass(frozen=True)
class ValidationAttempt:
    """Un escaneo, retenido solo en el buffer de la sesión"""
    scanner_user_id: str
    scanned_event_id: str
    outcome: ValidationOutcome
    reference: Optional[TicketReference] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class EventStats:
    total_confirmed_tickets: int
    checked_in: int

    @property
    def pending(self) -> int:
        return self.total_confirmed_tickets - self.checked_in
