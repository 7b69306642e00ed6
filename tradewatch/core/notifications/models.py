from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Notification:
    user_id: str
    text: str
