"""Rutas de validación de tickets"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict
import logging

from shared.core.config import settings
from shared.database.session import get_db
from shared.auth.dependencies import get_current_scanner
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.ticket_validation.models.ticket import (
    EventStatsResponse,
    ManualCheckInRequest,
    RecentValidationsResponse,
    ScanRequest,
    ScanResponse,
    TicketCheckInRequest,
    TicketResponse,
    ValidationAttemptResponse,
)
from services.ticket_validation.services.scan_session import ScanSession, ScanSessionRegistry
from services.ticket_validation.services.ticket_lookup import TicketLookup
from services.ticket_validation.services.ticket_service import (
    EventAccessDenied, TicketValidationService, ensure_event_access
)
from services.ticket_validation.services.ticket_store import SqlTicketStore

logger = logging.getLogger(__name__)

router = APIRouter()


def get_scan_sessions(request: Request) -> ScanSessionRegistry:
    """Registro de sesiones de escaneo de la aplicación"""
    return request.app.state.scan_sessions


def build_service(db: AsyncSession, session: ScanSession) -> TicketValidationService:
    return TicketValidationService(
        store=SqlTicketStore(db),
        session=session,
        timeout=settings.STORE_TIMEOUT_SECONDS,
        stats_max_retries=settings.STATS_MAX_RETRIES,
    )


async def authorize_event(lookup: TicketLookup, current_user: Dict, event_id: str):
    try:
        await ensure_event_access(lookup, current_user["user_id"], current_user["role"], event_id)
    except EventAccessDenied:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Solo puedes validar tickets de tus propios eventos"
        )


async def start_scanning(
    db: AsyncSession,
    sessions: ScanSessionRegistry,
    current_user: Dict,
    event_id: str
) -> TicketValidationService:
    """Autorizar al usuario en el evento y abrir (o retomar) su sesión de escaneo"""
    lookup = TicketLookup(SqlTicketStore(db), settings.STORE_TIMEOUT_SECONDS)
    await authorize_event(lookup, current_user, event_id)
    return build_service(db, sessions.get_or_create(current_user["user_id"], event_id))


async def store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Fallas del store de tickets o de la base: el escaneo no es inválido, se puede reintentar
    """
    logger.error(f"Ticket store unavailable - Path: {request.url.path}, Error: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "ticket_store_unavailable",
            "detail": "No se pudo contactar el servicio de tickets. Intenta escanear nuevamente.",
            "retryable": True,
        },
        headers={"Retry-After": "1"}
    )


@router.post("/scan", response_model=ScanResponse)
@limiter.limit(RATE_LIMITS["validation"])
async def scan_ticket(
    request: Request,
    payload: ScanRequest,
    db: AsyncSession = Depends(get_db),
    sessions: ScanSessionRegistry = Depends(get_scan_sessions),
    current_user: Dict = Depends(get_current_scanner)
):
    """
    Validar ticket mediante el contenido del QR

    Requiere autenticación de scanner/organizer/admin/coordinator.
    Los rechazos (ticket inválido, de otro evento, ya usado) retornan 200 con valid=false.
    """
    service = await start_scanning(db, sessions, current_user, payload.event_id)
    outcome = await service.scan(payload.qr_data, current_user["user_id"], payload.event_id)
    return ScanResponse.from_outcome(outcome)


@router.post("/check-in", response_model=ScanResponse)
@limiter.limit(RATE_LIMITS["validation"])
async def check_in_ticket(
    request: Request,
    payload: TicketCheckInRequest,
    db: AsyncSession = Depends(get_db),
    sessions: ScanSessionRegistry = Depends(get_scan_sessions),
    current_user: Dict = Depends(get_current_scanner)
):
    """Check-in ingresando el ID del ticket manualmente"""
    service = await start_scanning(db, sessions, current_user, payload.event_id)
    outcome = await service.check_in_ticket(payload.ticket_id.strip(), current_user["user_id"], payload.event_id)
    return ScanResponse.from_outcome(outcome)


@router.post("/check-in/manual", response_model=ScanResponse)
@limiter.limit(RATE_LIMITS["validation"])
async def manual_check_in(
    request: Request,
    payload: ManualCheckInRequest,
    db: AsyncSession = Depends(get_db),
    sessions: ScanSessionRegistry = Depends(get_scan_sessions),
    current_user: Dict = Depends(get_current_scanner)
):
    """Check-in por email del asistente (cuando el QR no se puede leer)"""
    service = await start_scanning(db, sessions, current_user, payload.event_id)
    outcome = await service.manual_check_in(payload.event_id, payload.attendee_email, current_user["user_id"])
    return ScanResponse.from_outcome(outcome)


@router.get("/events/{event_id}/stats", response_model=EventStatsResponse)
@limiter.limit(RATE_LIMITS["stats"])
async def get_event_stats(
    request: Request,
    event_id: str,
    db: AsyncSession = Depends(get_db),
    sessions: ScanSessionRegistry = Depends(get_scan_sessions),
    current_user: Dict = Depends(get_current_scanner)
):
    """Tickets confirmados, ingresados y pendientes del evento"""
    # Consultar stats no abre sesión; si hay una activa guarda el último conteo
    session = sessions.get(current_user["user_id"], event_id) or ScanSession(
        current_user["user_id"], event_id, limit=sessions.limit
    )
    service = build_service(db, session)
    await authorize_event(service.lookup, current_user, event_id)
    stats = await service.get_stats(event_id)
    return EventStatsResponse.from_stats(event_id, stats)


@router.get("/events/{event_id}/recent", response_model=RecentValidationsResponse)
async def get_recent_validations(
    event_id: str,
    sessions: ScanSessionRegistry = Depends(get_scan_sessions),
    current_user: Dict = Depends(get_current_scanner)
):
    """Últimas validaciones de la sesión del scanner, más nuevas primero"""
    session = sessions.get(current_user["user_id"], event_id)
    attempts = session.recent() if session else []
    return RecentValidationsResponse(
        validations=[ValidationAttemptResponse.from_attempt(a) for a in attempts]
    )


@router.delete("/events/{event_id}/session", status_code=status.HTTP_204_NO_CONTENT)
async def end_scan_session(
    event_id: str,
    sessions: ScanSessionRegistry = Depends(get_scan_sessions),
    current_user: Dict = Depends(get_current_scanner)
):
    """Terminar la sesión de escaneo y descartar sus validaciones recientes"""
    if not sessions.end(current_user["user_id"], event_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No hay sesión de escaneo activa para este evento"
        )


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_scanner)
):
    """
    Obtener información de un ticket por ID
    """
    lookup = TicketLookup(SqlTicketStore(db), settings.STORE_TIMEOUT_SECONDS)
    record = await lookup.fetch(ticket_id)

    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ticket no encontrado"
        )

    await authorize_event(lookup, current_user, record.event_id)
    return TicketResponse.from_record(record)
