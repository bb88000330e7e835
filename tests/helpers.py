from decimal import Decimal

from shared.auth.jwt_handler import create_access_token
from services.ticket_validation.models.domain import TicketRecord


def make_record(ticket_id="T1", event_id="E1", status="confirmed", validated_at=None, validated_by=None, **kwargs):
    kwargs.setdefault("attendee_name", "Ada Lovelace")
    kwargs.setdefault("attendee_email", "ada@example.com")
    kwargs.setdefault("ticket_type", "general")
    kwargs.setdefault("amount", Decimal("25.00"))
    return TicketRecord(
        id=ticket_id,
        event_id=event_id,
        status=status,
        validated_at=validated_at,
        validated_by=validated_by,
        **kwargs,
    )


def auth_headers(user_id="scanner-1", role="scanner"):
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}
