"""Utilidades para retry con backoff exponencial"""
import asyncio
import logging
from typing import Awaitable, Callable, Type, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 0.2,
    max_delay: float = 5.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,)
) -> T:
    """
    Ejecutar una corrutina con retry y backoff exponencial

    Solo debe usarse con operaciones idempotentes (lecturas); los commits
    de check-in nunca se reintentan automáticamente.

    Args:
        func: Callable sin argumentos que retorna la corrutina a ejecutar
        max_retries: Número máximo de reintentos
        initial_delay: Delay inicial en segundos
        max_delay: Delay máximo en segundos
        exponential_base: Base para cálculo exponencial
        exceptions: Excepciones que deben trigger retry

    Returns:
        Resultado de la función
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return await func()
        except exceptions as e:
            if attempt == max_retries:
                raise
            logger.warning(f"Retry {attempt + 1}/{max_retries} after {type(e).__name__}: {e}")
            await asyncio.sleep(delay)
            delay = min(delay * exponential_base, max_delay)
