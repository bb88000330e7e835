"""Conexión a la base de datos PostgreSQL"""
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from typing import AsyncGenerator
import logging
import asyncio

from shared.core.config import settings

logger = logging.getLogger(__name__)

# Base para modelos SQLAlchemy
Base = declarative_base()


class DatabaseUnavailable(Exception):
    """No se pudo obtener una conexión del pool (timeout, red o base caída)"""
    retryable = True


# Engine y session factory
engine = None
async_session_maker = None


def to_async_url(database_url: str) -> str:
    """Convertir una URL de PostgreSQL al driver async (asyncpg)"""
    # Los parámetros SSL se configuran en connect_args
    if "?" in database_url:
        database_url = database_url.split("?")[0]

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif database_url.startswith("postgresql+psycopg://"):
        database_url = database_url.replace("postgresql+psycopg://", "postgresql+asyncpg://", 1)
    return database_url


async def init_db(database_url: str = None):
    """Inicializar conexión a la base de datos"""
    global engine, async_session_maker

    if engine is not None:
        logger.warning("Database engine already initialized, skipping...")
        return

    database_url = to_async_url(database_url or settings.DATABASE_URL)
    logger.info(f"Initializing database connection to: {database_url.split('@')[1] if '@' in database_url else database_url}")

    connect_args = {}
    pool_config = {}
    if database_url.startswith("postgresql+asyncpg://"):
        # El timeout de cada statement queda acotado también del lado del driver
        connect_args = {
            "command_timeout": settings.STORE_TIMEOUT_SECONDS,
            "timeout": 10,
        }
        pool_config = {
            "pool_pre_ping": True,  # Verificar conexiones antes de usar
            "pool_recycle": 300,
            "pool_timeout": settings.STORE_TIMEOUT_SECONDS,
            "pool_use_lifo": True,
            "pool_size": settings.DATABASE_POOL_SIZE,
            "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        }
        logger.info(f"Pool config: size={pool_config['pool_size']}, overflow={pool_config['max_overflow']}")

    engine = create_async_engine(
        database_url,
        echo=settings.APP_DEBUG,
        connect_args=connect_args,
        **pool_config
    )

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    logger.info("Database engine initialized successfully")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency para obtener sesión de base de datos con retry para errores transitorios.

    Maneja errores de DNS y conexión transitorios con retry exponencial.
    """
    if async_session_maker is None:
        logger.error("Database not initialized! Call init_db() first.")
        raise RuntimeError("Database not initialized. Please check application startup.")

    max_retries = 3
    retry_delay = 0.5  # Segundos iniciales
    session = None

    # Solo se reintenta la obtención de la conexión, nunca el request
    for attempt in range(max_retries):
        session = async_session_maker()
        try:
            await session.connection()
            break
        except SQLAlchemyError as e:
            # Pool agotado u OperationalError
            await session.close()
            logger.error(f"Database connection unavailable: {type(e).__name__}: {e}")
            raise DatabaseUnavailable("Database connection unavailable") from e
        except OSError as e:
            # Captura errores de DNS y socket (socket.gaierror es subclase de OSError)
            await session.close()
            if attempt < max_retries - 1:
                delay = retry_delay * (2 ** attempt)
                logger.warning(
                    f"Database connection error (attempt {attempt + 1}/{max_retries}): {type(e).__name__}: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.error(f"Database connection failed after {max_retries} attempts: {e}")
                raise DatabaseUnavailable("Database connection failed") from e

    try:
        yield session
    finally:
        await session.close()


async def close_db():
    """Cerrar conexiones a la base de datos"""
    global engine, async_session_maker
    if engine:
        logger.info("Closing database connections...")
        await engine.dispose()
        engine = None
        async_session_maker = None
        logger.info("Database connections closed")
