"""In-memory token cache shared by the credentials of one process."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Iterable, Protocol, runtime_checkable

from arm_credentials.credentials.token import TokenResponse

# Tokens expiring within this window are treated as stale.
EXPIRATION_BUFFER_SECONDS = 300


@dataclass(frozen=True)
class CacheKey:
    authority: str
    client_id: str
    resource: str
    user_id: str | None = None


@dataclass(frozen=True)
class TokenCacheEntry:
    authority: str
    client_id: str
    resource: str
    user_id: str | None
    token: TokenResponse

    @property
    def key(self) -> CacheKey:
        return CacheKey(
            authority=self.authority,
            client_id=self.client_id,
            resource=self.resource,
            user_id=self.user_id,
        )

    def is_expiring_soon(self, buffer_seconds: int = EXPIRATION_BUFFER_SECONDS) -> bool:
        return self.token.is_expiring_soon(buffer_seconds)

    @classmethod
    def from_token(
        cls,
        token: TokenResponse,
        *,
        authority: str,
        client_id: str,
        resource: str,
        user_id: str | None = None,
    ) -> "TokenCacheEntry":
        return cls(
            authority=authority,
            client_id=client_id,
            resource=resource,
            user_id=normalize_user_id(user_id),
            token=token,
        )


def normalize_user_id(user_id: str | None) -> str | None:
    return user_id.lower() if user_id else None


@runtime_checkable
class TokenCacheBackend(Protocol):
    """Anything that can stand in for :class:`TokenCache`."""

    async def find(self, **query: Any) -> list[TokenCacheEntry]: ...

    async def add(self, entries: Iterable[TokenCacheEntry]) -> None: ...

    async def remove(self, entries: Iterable[TokenCacheEntry]) -> None: ...


class TokenCache:
    """Unbounded in-memory cache keyed by authority, client, resource and user.

    Entries live until they are replaced or explicitly removed.
    """

    def __init__(self) -> None:
        self._entries: OrderedDict[CacheKey, TokenCacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def find(self, **query: Any) -> list[TokenCacheEntry]:
        """Return entries whose attributes equal every non-None query value."""
        criteria = {k: v for k, v in query.items() if v is not None}
        if "user_id" in criteria:
            criteria["user_id"] = normalize_user_id(criteria["user_id"])
        return [
            entry
            for entry in self._entries.values()
            if all(getattr(entry, name) == value for name, value in criteria.items())
        ]

    async def add(self, entries: Iterable[TokenCacheEntry]) -> None:
        for entry in entries:
            self._entries[entry.key] = entry
            self._entries.move_to_end(entry.key)

    async def remove(self, entries: Iterable[TokenCacheEntry]) -> None:
        for entry in entries:
            self._entries.pop(entry.key, None)
