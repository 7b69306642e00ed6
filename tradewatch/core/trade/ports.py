from __future__ import annotations

from typing import Protocol


class AuthPort(Protocol):
    async def start_auth_flow(self, user_id: str) -> str:
        """Discard stale credentials, request a new token and return the authorize URL."""
        raise NotImplementedError

    async def exchange_pin(self, user_id: str, pin: str) -> None:
        """Trade the verifier PIN for access credentials; raises CredentialExpired on a bad PIN."""
        raise NotImplementedError

    def cleanup(self, user_id: str) -> None:
        """Release any half-finished authorization state held for the user."""
        raise NotImplementedError
