from __future__ import annotations

import json
from dataclasses import fields, is_dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from tradewatch.core.orders.ports import EventBus


class JsonlEventLogger:
    """Appends every published event to a JSON-lines journal."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def attach(self, bus: EventBus) -> Callable[[], None]:
        return bus.subscribe(object, self.handle)

    def handle(self, event: object) -> None:
        record = {
            "logged_at": _format_datetime(datetime.now(timezone.utc)),
            "event_type": type(event).__name__,
            "event": _serialize(event),
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=False))
            handle.write("\n")


def _serialize(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {field.name: _serialize(getattr(value, field.name)) for field in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return _format_datetime(value)
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _serialize(val) for key, val in value.items()}
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return repr(value)


def _format_datetime(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")
