import pytest
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeout

from shared.database import connection
from shared.database.connection import DatabaseUnavailable


class FailingSession:
    def __init__(self, error):
        self.error = error
        self.closed = False

    async def connection(self):
        raise self.error

    async def close(self):
        self.closed = True


@pytest.mark.parametrize("error", [
    PoolTimeout("QueuePool limit of size 5 overflow 10 reached"),
    OperationalError("SELECT 1", {}, Exception("connection refused")),
])
async def test_get_db_reports_unavailable_database(monkeypatch, error):
    sessions = []

    def session_maker():
        sessions.append(FailingSession(error))
        return sessions[-1]

    monkeypatch.setattr(connection, "async_session_maker", session_maker)

    with pytest.raises(DatabaseUnavailable):
        await connection.get_db().__anext__()

    assert len(sessions) == 1
    assert sessions[0].closed is True


async def test_get_db_retries_socket_errors_before_giving_up(monkeypatch):
    sessions = []

    def session_maker():
        sessions.append(FailingSession(ConnectionRefusedError("connection refused")))
        return sessions[-1]

    async def no_sleep(delay):
        pass

    monkeypatch.setattr(connection, "async_session_maker", session_maker)
    monkeypatch.setattr(connection.asyncio, "sleep", no_sleep)

    with pytest.raises(DatabaseUnavailable):
        await connection.get_db().__anext__()

    assert len(sessions) == 3
    assert all(s.closed for s in sessions)
