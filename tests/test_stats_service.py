from datetime import datetime, timezone

import pytest

from services.ticket_validation.services.stats_service import StatsService
from services.ticket_validation.services.ticket_store import StatsUnavailable
from tests.helpers import make_record


async def test_refresh_counts_confirmed_and_checked_in(store):
    store.add(make_record("T5", "E1", validated_at=datetime.now(timezone.utc), validated_by="scanner-2"))
    store.add(make_record("T6", "E1", "refunded"))

    stats = await StatsService(store, timeout=1.0).refresh("E1")

    assert stats.total_confirmed_tickets == 2
    assert stats.checked_in == 1
    assert stats.pending == 1


async def test_pending_is_total_minus_checked_in(store):
    for i in range(7):
        store.add(make_record(f"C{i}", "E3", validated_at=datetime.now(timezone.utc) if i % 3 == 0 else None))

    stats = await StatsService(store, timeout=1.0).refresh("E3")

    assert stats.pending == stats.total_confirmed_tickets - stats.checked_in
    assert (stats.total_confirmed_tickets, stats.checked_in, stats.pending) == (7, 3, 4)


async def test_event_without_tickets(store):
    stats = await StatsService(store, timeout=1.0).refresh("E404")

    assert (stats.total_confirmed_tickets, stats.checked_in, stats.pending) == (0, 0, 0)


async def test_store_error_retries_then_raises(store):
    store.fail_on.add("count_confirmed_tickets")

    with pytest.raises(StatsUnavailable):
        await StatsService(store, timeout=1.0, max_retries=2).refresh("E1")

    assert store.calls.count("count_confirmed_tickets") == 3
