from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from loguru import logger

STATE_STARTED = "started"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TaskSession:
    task: str
    state: str = STATE_STARTED
    data: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=_now)


class SessionStore:
    """One active chat task per user, held in process memory."""

    def __init__(self) -> None:
        self._sessions: dict[str, TaskSession] = {}

    def get(self, user_id: str) -> Optional[TaskSession]:
        return self._sessions.get(user_id)

    def has_active_task(self, user_id: str) -> bool:
        return user_id in self._sessions

    def active_task(self, user_id: str) -> Optional[str]:
        session = self._sessions.get(user_id)
        return session.task if session else None

    def start_task(self, user_id: str, task: str, data: Optional[dict[str, Any]] = None) -> TaskSession:
        logger.debug(f"Starting task '{task}' for user {user_id}")
        session = TaskSession(task=task, data=dict(data or {}))
        self._sessions[user_id] = session
        return session

    def update_task(
        self,
        user_id: str,
        state: str,
        data: Optional[dict[str, Any]] = None,
    ) -> Optional[TaskSession]:
        current = self._sessions.get(user_id)
        if current is None:
            logger.warning(f"Cannot update task for user {user_id}: no active task")
            return None
        updated = replace(current, state=state, data={**current.data, **(data or {})})
        self._sessions[user_id] = updated
        return updated

    def complete_task(self, user_id: str) -> Optional[TaskSession]:
        session = self._sessions.pop(user_id, None)
        if session:
            logger.debug(f"Completed task '{session.task}' for user {user_id}")
        return session

    def cleanup_stale(self, max_age: timedelta, *, now: Optional[datetime] = None) -> list[str]:
        reference = now or _now()
        stale = [
            user_id
            for user_id, session in self._sessions.items()
            if reference - session.started_at > max_age
        ]
        for user_id in stale:
            logger.info(f"Clearing stale task '{self._sessions[user_id].task}' for user {user_id}")
            del self._sessions[user_id]
        return stale
