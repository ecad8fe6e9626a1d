"""CacheClient abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class CacheClient(ABC):
    """TTL key-value cache used for resolved values and flag decisions.

    Implementations must be safe for concurrent use from multiple threads.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the value for key, or None when absent or expired."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value. ttl is in seconds; None never expires."""
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a key. True if it was present."""
        ...
