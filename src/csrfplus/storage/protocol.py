# Secret store protocol - the interface the engine needs from a backend.
# Created: 2026-10-18

from typing import Protocol, runtime_checkable


@runtime_checkable
class SecretStore(Protocol):
    """Async key/value store with per-entry TTL.

    Values are b64url-encoded secrets. ``ttl_seconds == 0`` means no expiry.
    A read after expiry returns ``None``, same as a key that was never set.
    """

    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if absent or expired."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int = 0) -> None:
        """Store *value* under *key*, replacing any previous entry."""
        ...

    async def delete(self, key: str) -> None:
        """Remove *key*. Missing keys are ignored."""
        ...
