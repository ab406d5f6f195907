"""
Authentication signal.

The auth handshake itself lives outside this package. The session only
needs to know *that* the client is authenticated before it talks to the
remote store; it never looks at credentials.
"""

import asyncio
from typing import Optional


class AuthSignal:
    """Set by the auth service once the client holds a session."""

    def __init__(self):
        self._authenticated = asyncio.Event()
        self._user_id: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated.is_set()

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def set_authenticated(self, user_id: str) -> None:
        self._user_id = user_id
        self._authenticated.set()

    def clear(self) -> None:
        self._user_id = None
        self._authenticated.clear()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait until authenticated. Returns False on timeout."""
        try:
            await asyncio.wait_for(self._authenticated.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True
