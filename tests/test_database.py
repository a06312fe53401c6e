"""
Tests for the request-scoped database session dependency.
"""

import pytest

from core import database


class _SessionSpy:
    def __init__(self, calls):
        self.calls = calls

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def rollback(self):
        self.calls.append("rollback")

    async def close(self):
        self.calls.append("close")


async def test_get_db_rolls_back_when_the_request_fails(monkeypatch) -> None:
    """Verify an error raised while the session is in use rolls it back before closing."""

    calls = []
    monkeypatch.setattr(database, "AsyncSessionLocal", lambda: _SessionSpy(calls))

    sessions = database.get_db()
    await sessions.__anext__()
    with pytest.raises(RuntimeError):
        await sessions.athrow(RuntimeError("request failed"))

    assert calls == ["rollback", "close"]


async def test_get_db_closes_without_rollback_on_success(monkeypatch) -> None:
    """Verify a successful request only closes the session."""

    calls = []
    monkeypatch.setattr(database, "AsyncSessionLocal", lambda: _SessionSpy(calls))

    sessions = database.get_db()
    await sessions.__anext__()
    with pytest.raises(StopAsyncIteration):
        await sessions.__anext__()

    assert calls == ["close"]
