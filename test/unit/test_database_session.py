"""Unit tests for database session helpers."""

from __future__ import annotations

import pytest

from services import database


class FakeSession:
    """Session stub capturing commits, rollbacks and closes."""

    def __init__(self) -> None:
        """Initialize call tracking."""
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def commit(self) -> None:
        """Mark commit as called."""
        self.committed = True

    def rollback(self) -> None:
        """Mark rollback as called."""
        self.rolled_back = True

    def close(self) -> None:
        """Mark close as called."""
        self.closed = True


def test_session_scope_commits_on_success(monkeypatch) -> None:
    """session_scope commits and closes after successful usage."""
    session = FakeSession()
    monkeypatch.setattr(database, "get_sync_session", lambda: session)

    with database.session_scope() as active_session:
        assert active_session is session

    assert session.committed is True
    assert session.rolled_back is False
    assert session.closed is True


def test_session_scope_rolls_back_on_error(monkeypatch) -> None:
    """session_scope rolls back when an exception is raised."""
    session = FakeSession()
    monkeypatch.setattr(database, "get_sync_session", lambda: session)

    with pytest.raises(RuntimeError):
        with database.session_scope():
            raise RuntimeError("boom")

    assert session.committed is False
    assert session.rolled_back is True
    assert session.closed is True


def test_session_factory_is_cached(monkeypatch) -> None:
    """The process-wide session factory is built once from settings."""
    monkeypatch.setattr(database, "_sync_engine", None)
    monkeypatch.setattr(database, "_sync_session_factory", None)
    monkeypatch.setattr(database.settings.database, "url", "sqlite:///:memory:")

    factory = database.get_session_factory()

    assert database.get_session_factory() is factory
    url = database.get_sync_engine().url
    assert url.drivername == "sqlite"
    assert url.database == ":memory:"
    assert database.check_connection() is True
