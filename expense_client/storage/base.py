from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "token"
USERNAME_KEY = "username"

CREDENTIAL_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USERNAME_KEY)


class TokenStore(ABC):
    """Async string key-value store holding the session credentials.

    Writes to different keys are independent; a crash between them can leave
    a partial credential set behind.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value under key, replacing any previous value."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete key. Removing an absent key is not an error."""

    async def clear(self, keys: Iterable[str] = CREDENTIAL_KEYS) -> None:
        for key in keys:
            await self.remove(key)
