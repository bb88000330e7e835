import os

# Antes de importar la app: rate limiter en memoria y secreto fijo
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["APP_ENV"] = "test"

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shared.database.connection import Base, get_db
from shared.database.models import Event, Ticket
from services.ticket_validation.services.scan_session import ScanSession, ScanSessionRegistry
from services.ticket_validation.services.ticket_service import TicketValidationService
from tests.fakes import FakeTicketStore
from tests.helpers import make_record


@pytest.fixture
def store():
    return FakeTicketStore([
        make_record("T1", "E1", "confirmed"),
        make_record("T2", "E1", "pending", attendee_email="grace@example.com"),
        make_record("T3", "E2", "confirmed", attendee_email="linus@example.com"),
    ], organizers={"E1": "org-1", "E2": "org-2"})


@pytest.fixture
def session():
    return ScanSession("scanner-1", "E1", limit=5)


@pytest.fixture
def service(store, session):
    return TicketValidationService(store, session, timeout=1.0, stats_max_retries=0)


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tickets.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as db:
        db.add_all([
            Event(id="E1", title="Tech Conference 2024", organizer_id="org-1"),
            Event(id="E2", title="React Native Workshop", organizer_id="org-2"),
            Ticket(id="T1", event_id="E1", status="confirmed", ticket_type="vip", amount=Decimal("50.00"),
                   attendee_name="Ada Lovelace", attendee_email="Ada@Example.com"),
            Ticket(id="T2", event_id="E1", status="pending", attendee_name="Grace Hopper",
                   attendee_email="grace@example.com"),
            Ticket(id="T3", event_id="E2", status="confirmed", attendee_name="Linus Torvalds",
                   attendee_email="linus@example.com"),
            Ticket(id="T4", event_id="E1", status="confirmed", attendee_name="Alan Turing",
                   attendee_email="alan@example.com",
                   validated_at=datetime(2024, 5, 1, 18, 30, tzinfo=timezone.utc), validated_by="scanner-9"),
        ])
        await db.commit()

    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def client(session_maker):
    from main import app
    from shared.utils.rate_limiter import limiter

    async def override_get_db():
        async with session_maker() as db:
            yield db

    app.dependency_overrides[get_db] = override_get_db
    app.state.scan_sessions = ScanSessionRegistry(limit=5)
    limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()
