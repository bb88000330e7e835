"""API Gateway principal - Punto de entrada de la aplicación"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from redis.exceptions import RedisError
import logging
from contextlib import asynccontextmanager

from shared.core.config import settings
from shared.database import connection
from shared.database.connection import init_db, close_db, DatabaseUnavailable
from shared.cache.redis_client import init_redis, close_redis, get_redis
from shared.utils.rate_limiter import limiter, rate_limit_exceeded_handler
from services.ticket_validation.routes.validation import router as validation_router, store_unavailable_handler
from services.ticket_validation.services.scan_session import ScanSessionRegistry
from services.ticket_validation.services.ticket_store import TicketStoreError

# Configurar logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events de la aplicación"""
    logger.info("Iniciando aplicación...")
    await init_db()
    await init_redis()
    logger.info("Aplicación iniciada")
    yield
    logger.info("Cerrando aplicación...")
    await close_db()
    await close_redis()
    logger.info("Aplicación cerrada")


app = FastAPI(
    title="Check-in API",
    description="Validación de tickets por QR y check-in en la puerta de eventos",
    version="1.0.0",
    lifespan=lifespan
)

# Sesiones de escaneo de esta instancia (validaciones recientes por scanner y evento)
app.state.scan_sessions = ScanSessionRegistry(
    limit=settings.RECENT_VALIDATIONS_LIMIT,
    max_sessions=settings.SCAN_SESSION_MAX,
    idle_timeout=settings.SCAN_SESSION_IDLE_SECONDS,
)

# Configurar CORS PRIMERO (antes de rate limiting)
if settings.APP_ENV == "development":
    logger.info("Modo desarrollo: CORS configurado para permitir todos los orígenes")
    allow_origins = ["*"]
    allow_credentials = False  # No se puede usar credentials con allow_origins=["*"]
else:
    allow_origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    allow_credentials = True
    logger.info(f"CORS origins configurados: {allow_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=allow_credentials,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(TicketStoreError, store_unavailable_handler)
app.add_exception_handler(DatabaseUnavailable, store_unavailable_handler)
app.add_exception_handler(SQLAlchemyError, store_unavailable_handler)

app.include_router(validation_router, prefix="/api/v1/tickets", tags=["tickets"])


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "ok", "service": "checkin-api"}


@app.get("/ready")
async def ready():
    """Ready check endpoint - verifica conexiones"""
    try:
        if connection.async_session_maker is None:
            raise RuntimeError("Database not initialized")
        async with connection.async_session_maker() as session:
            await session.execute(text("SELECT 1"))

        redis = await get_redis()
        await redis.ping()

        return {"status": "ready", "database": "connected", "redis": "connected"}
    except (SQLAlchemyError, RedisError, OSError, RuntimeError) as e:
        logger.error(f"Ready check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "not ready", "error": str(e)})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.APP_DEBUG
    )
