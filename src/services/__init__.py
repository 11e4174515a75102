"""Services module for the structural drift monitor."""

from services.database import get_session_factory, get_sync_session, session_scope

__all__ = [
    "get_session_factory",
    "get_sync_session",
    "session_scope",
]
