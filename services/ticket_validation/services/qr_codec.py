"""Codec del contenido de los QR de tickets"""
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import ValidationError

from services.ticket_validation.models.domain import MalformedPayload, TicketReference

_ID_ALPHABET = string.ascii_lowercase + string.digits

# Un QR versión 40 no pasa de ~3 KB; más que esto no salió de la app
MAX_PAYLOAD_LENGTH = 4096


def decode(raw) -> Union[TicketReference, MalformedPayload]:
    """
    Decodificar el texto leído por el scanner

    El contenido es JSON producido por la app al emitir el ticket, por ejemplo
    {"ticketId": "...", "eventId": "...", "eventTitle": "...", "ticketType": "vip",
    "userId": "...", "timestamp": "..."}. ticketId, eventId, eventTitle y
    ticketType son obligatorios.

    Nunca lanza excepción: cualquier contenido no reconocible retorna
    MalformedPayload.
    """
    if isinstance(raw, (bytes, str)) and len(raw) > MAX_PAYLOAD_LENGTH:
        return MalformedPayload(f"QR content exceeds {MAX_PAYLOAD_LENGTH} characters")

    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return MalformedPayload("QR content is not valid UTF-8")

    if not isinstance(raw, str):
        return MalformedPayload("QR content is not text")

    raw = raw.strip()
    if not raw:
        return MalformedPayload("QR content is empty")

    try:
        return TicketReference.model_validate_json(raw)
    except ValidationError as e:
        return MalformedPayload(_describe(e))
    except ValueError:
        # Texto con surrogates sueltos u otros caracteres no codificables
        return MalformedPayload("QR content is not valid text")


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    if first["type"] == "json_invalid":
        return "QR content is not a ticket code"
    if first["type"] == "model_type":
        return "QR content is not a ticket object"
    location = ".".join(str(part) for part in first["loc"])
    return f"Invalid field '{location}': {first['msg']}"


def encode(reference: TicketReference) -> str:
    """Inverso de decode; solo se usa para generar QR de prueba"""
    return reference.model_dump_json(by_alias=True, exclude_none=True)


def generate_ticket_id() -> str:
    return _generate_id("ticket")


def generate_event_id() -> str:
    return _generate_id("event")


def _generate_id(prefix: str) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def generate_test_reference(
    ticket_id: Optional[str] = None,
    event_id: Optional[str] = None,
    event_title: str = "Test Event",
    ticket_type: str = "general",
    holder_id: str = "test-user-id",
) -> TicketReference:
    """Referencia de prueba para imprimir un QR y probar el scanner"""
    return TicketReference(
        ticket_id=ticket_id or generate_ticket_id(),
        event_id=event_id or generate_event_id(),
        event_title=event_title,
        ticket_type=ticket_type,
        holder_id=holder_id,
        issued_at=datetime.now(timezone.utc).isoformat(),
    )
