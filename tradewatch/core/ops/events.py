from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TickStarted:
    symbols: tuple[str, ...]
    plans: int
    pending_fills: int
    timestamp: datetime

    @classmethod
    def now(cls, *, symbols: tuple[str, ...], plans: int, pending_fills: int) -> "TickStarted":
        return cls(symbols=symbols, plans=plans, pending_fills=pending_fills, timestamp=_now())


@dataclass(frozen=True)
class TickCompleted:
    prices: int
    triggered: int
    fills_resolved: int
    duration_ms: float
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        prices: int,
        triggered: int,
        fills_resolved: int,
        duration_ms: float,
    ) -> "TickCompleted":
        return cls(
            prices=prices,
            triggered=triggered,
            fills_resolved=fills_resolved,
            duration_ms=duration_ms,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class TickSkipped:
    reason: str
    timestamp: datetime

    @classmethod
    def now(cls, reason: str) -> "TickSkipped":
        return cls(reason=reason, timestamp=_now())


@dataclass(frozen=True)
class CliErrorLogged:
    message: str
    error_type: str
    traceback: str
    timestamp: datetime
    command: Optional[str] = None
    raw_input: Optional[str] = None

    @classmethod
    def now(
        cls,
        *,
        message: str,
        error_type: str,
        traceback: str,
        command: Optional[str] = None,
        raw_input: Optional[str] = None,
    ) -> "CliErrorLogged":
        return cls(
            message=message,
            error_type=error_type,
            traceback=traceback,
            timestamp=_now(),
            command=command,
            raw_input=raw_input,
        )
