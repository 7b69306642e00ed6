from tradewatch.core.sessions.store import SessionStore, TaskSession

__all__ = ["SessionStore", "TaskSession"]
