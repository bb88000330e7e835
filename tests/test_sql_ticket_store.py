from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from services.ticket_validation.services.ticket_store import SqlTicketStore, TicketStoreError


async def test_get_ticket_joins_event_title(session_maker):
    async with session_maker() as db:
        record = await SqlTicketStore(db).get_ticket("T1")

    assert record.event_id == "E1"
    assert record.event_title == "Tech Conference 2024"
    assert record.status == "confirmed"
    assert record.ticket_type == "vip"
    assert record.amount == Decimal("50.00")
    assert record.validated_at is None
    assert record.created_at is not None


async def test_get_missing_ticket(session_maker):
    async with session_maker() as db:
        assert await SqlTicketStore(db).get_ticket("T404") is None


async def test_conditional_update_succeeds_once(session_maker):
    now = datetime.now(timezone.utc)
    async with session_maker() as db:
        store = SqlTicketStore(db)

        first = await store.conditionally_validate_ticket("T1", "scanner-1", now)
        second = await store.conditionally_validate_ticket("T1", "scanner-2", now)
        record = await store.get_ticket("T1")

    assert (first, second) == (True, False)
    assert record.validated_at is not None
    assert record.validated_by == "scanner-1"


async def test_conditional_update_across_sessions(session_maker):
    now = datetime.now(timezone.utc)
    async with session_maker() as db_a, session_maker() as db_b:
        # Ambos scanners leyeron el ticket sin validar
        assert (await SqlTicketStore(db_a).get_ticket("T1")).validated_at is None
        assert (await SqlTicketStore(db_b).get_ticket("T1")).validated_at is None
        await db_a.commit()
        await db_b.commit()

        won = await SqlTicketStore(db_a).conditionally_validate_ticket("T1", "scanner-a", now)
        lost = await SqlTicketStore(db_b).conditionally_validate_ticket("T1", "scanner-b", now)
        seen_by_b = await SqlTicketStore(db_b).get_ticket("T1")

    assert (won, lost) == (True, False)
    assert seen_by_b.validated_by == "scanner-a"


@pytest.mark.parametrize("ticket_id", ["T2", "T4", "T404"])
async def test_conditional_update_rejects_ineligible_tickets(session_maker, ticket_id):
    async with session_maker() as db:
        updated = await SqlTicketStore(db).conditionally_validate_ticket(
            ticket_id, "scanner-1", datetime.now(timezone.utc)
        )

    assert updated is False


async def test_counts(session_maker):
    async with session_maker() as db:
        store = SqlTicketStore(db)
        assert await store.count_confirmed_tickets("E1") == 2
        assert await store.count_validated_tickets("E1") == 1

        await store.conditionally_validate_ticket("T1", "scanner-1", datetime.now(timezone.utc))

        assert await store.count_confirmed_tickets("E1") == 2
        assert await store.count_validated_tickets("E1") == 2
        assert await store.count_confirmed_tickets("E404") == 0


async def test_find_tickets_by_email_is_case_insensitive_and_scoped(session_maker):
    async with session_maker() as db:
        store = SqlTicketStore(db)
        found = await store.find_tickets_by_email("E1", " ada@EXAMPLE.com")
        other_event = await store.find_tickets_by_email("E2", "ada@example.com")

    assert [t.id for t in found] == ["T1"]
    assert found[0].event_title == "Tech Conference 2024"
    assert other_event == []


async def test_get_event_organizer(session_maker):
    async with session_maker() as db:
        store = SqlTicketStore(db)
        owner = await store.get_event_organizer("E2")
        missing = await store.get_event_organizer("E404")

    assert owner == "org-2"
    assert missing is None


class UnreachableDatabase:
    """Sesión cuyo servidor dejó de responder"""

    def __init__(self):
        self.rolled_back = False

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    async def commit(self):
        pass

    async def rollback(self):
        self.rolled_back = True


async def test_database_errors_become_store_errors():
    db = UnreachableDatabase()
    store = SqlTicketStore(db)

    with pytest.raises(TicketStoreError):
        await store.get_ticket("T1")
    with pytest.raises(TicketStoreError):
        await store.count_confirmed_tickets("E1")
    with pytest.raises(TicketStoreError):
        await store.find_tickets_by_email("E1", "ada@example.com")
    with pytest.raises(TicketStoreError):
        await store.get_event_organizer("E1")
    with pytest.raises(TicketStoreError):
        await store.conditionally_validate_ticket("T1", "scanner-1", datetime.now(timezone.utc))
    assert db.rolled_back is True
