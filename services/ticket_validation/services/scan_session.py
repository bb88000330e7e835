"""Estado de una sesión de escaneo (scanner + evento)"""
import logging
import time
from collections import OrderedDict, deque
from typing import Callable, List, Optional, Tuple

from services.ticket_validation.models.domain import EventStats, ValidationAttempt

logger = logging.getLogger(__name__)


class ScanSession:
    """Validaciones recientes de un scanner en un evento, más nuevas primero"""

    def __init__(self, scanner_user_id: str, event_id: str, limit: int = 5):
        self.scanner_user_id = scanner_user_id
        self.event_id = event_id
        self.last_stats: Optional[EventStats] = None
        self.last_active = 0.0
        self._recent = deque(maxlen=limit)

    def record(self, attempt: ValidationAttempt):
        self._recent.appendleft(attempt)

    def recent(self) -> List[ValidationAttempt]:
        return list(self._recent)

    def clear(self):
        self._recent.clear()


class ScanSessionRegistry:
    """
    Sesiones activas de la aplicación, por (scanner, evento)

    Acotado en memoria: las sesiones sin actividad por más de idle_timeout
    segundos expiran, y sobre max_sessions se descarta la usada hace más tiempo.
    """

    def __init__(
        self,
        limit: int = 5,
        max_sessions: int = 1000,
        idle_timeout: float = 8 * 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.max_sessions = max_sessions
        self.idle_timeout = idle_timeout
        self._clock = clock
        # Orden = último uso, la más antigua primero
        self._sessions: "OrderedDict[Tuple[str, str], ScanSession]" = OrderedDict()

    def get(self, scanner_user_id: str, event_id: str) -> Optional[ScanSession]:
        """Sesión existente, sin crearla"""
        self._expire_idle()
        key = (scanner_user_id, event_id)
        session = self._sessions.get(key)
        if session is not None:
            self._touch(key, session)
        return session

    def get_or_create(self, scanner_user_id: str, event_id: str) -> ScanSession:
        session = self.get(scanner_user_id, event_id)
        if session is None:
            key = (scanner_user_id, event_id)
            session = ScanSession(scanner_user_id, event_id, limit=self.limit)
            self._sessions[key] = session
            self._touch(key, session)
            while len(self._sessions) > self.max_sessions:
                (old_scanner, old_event), _ = self._sessions.popitem(last=False)
                logger.info(f"Scan session evicted (capacity): scanner {old_scanner}, event {old_event}")
        return session

    def end(self, scanner_user_id: str, event_id: str) -> bool:
        return self._sessions.pop((scanner_user_id, event_id), None) is not None

    def _touch(self, key: Tuple[str, str], session: ScanSession):
        session.last_active = self._clock()
        self._sessions.move_to_end(key)

    def _expire_idle(self):
        cutoff = self._clock() - self.idle_timeout
        while self._sessions:
            key, oldest = next(iter(self._sessions.items()))
            if oldest.last_active > cutoff:
                break
            del self._sessions[key]
            logger.info(f"Scan session expired: scanner {key[0]}, event {key[1]}")

    def __len__(self):
        return len(self._sessions)
