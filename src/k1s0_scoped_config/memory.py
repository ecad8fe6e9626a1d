"""In-memory cache and repository implementations."""

from __future__ import annotations

import copy
import threading
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from .cache import CacheClient
from .models import ConfigurationEntry, FeatureFlag
from .repository import ConfigurationRepository
from .scope import ScopeLevel


class _CacheEntry:
    __slots__ = ("value", "expires_at")

    def __init__(self, value: Any, ttl: float | None) -> None:
        self.value = value
        self.expires_at: float | None = (
            time.monotonic() + ttl if ttl is not None else None
        )

    def is_expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at


class InMemoryCacheClient(CacheClient):
    """Thread-safe in-process TTL cache.

    Expired entries are dropped when read, and swept from the whole store on
    ``set`` once the earliest known expiry has passed.
    """

    def __init__(self) -> None:
        self._store: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()
        self._next_expiry: float | None = None

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if entry.is_expired():
                del self._store[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._lock:
            if self._next_expiry is not None and time.monotonic() >= self._next_expiry:
                self._evict_expired()
            entry = _CacheEntry(value, ttl)
            self._store[key] = entry
            if entry.expires_at is not None and (
                self._next_expiry is None or entry.expires_at < self._next_expiry
            ):
                self._next_expiry = entry.expires_at

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for entry in self._store.values() if not entry.is_expired())

    def _evict_expired(self) -> None:
        # Caller holds the lock.
        expired = [key for key, entry in self._store.items() if entry.is_expired()]
        for key in expired:
            del self._store[key]
        self._next_expiry = min(
            (e.expires_at for e in self._store.values() if e.expires_at is not None),
            default=None,
        )


def _visible(
    scope: ScopeLevel,
    scope_identifier: str | None,
    scope_identifiers: Mapping[ScopeLevel, str | None],
) -> bool:
    if scope not in scope_identifiers:
        return False
    return scope_identifiers[scope] == scope_identifier


class InMemoryConfigurationRepository(ConfigurationRepository):
    """Repository backed by process memory, for tests and embedding.

    Upserts match on the exact (key/name, scope, identifier) identity and
    otherwise insert. With ``match_by_name_first`` an existing record with
    the same key/name is updated in place instead, so an edit may move it to
    another scope; that mode keeps a single record per key/name, like the
    document-store binding it mirrors. Stored records are copied in and out.
    """

    def __init__(
        self,
        entries: list[ConfigurationEntry] | None = None,
        flags: list[FeatureFlag] | None = None,
        *,
        match_by_name_first: bool = False,
    ) -> None:
        self._entries: list[ConfigurationEntry] = []
        self._flags: list[FeatureFlag] = []
        self._match_by_name_first = match_by_name_first
        self._lock = threading.Lock()
        for entry in entries or []:
            self.set_entry(entry)
        for flag in flags or []:
            self.set_flag(flag)

    def get_entry(
        self, key: str, scope: ScopeLevel, scope_identifier: str | None
    ) -> ConfigurationEntry | None:
        with self._lock:
            for entry in self._entries:
                if (
                    entry.key == key
                    and entry.scope == scope
                    and entry.scope_identifier == scope_identifier
                ):
                    return copy.deepcopy(entry)
        return None

    def get_flag(
        self, name: str, scope: ScopeLevel, scope_identifier: str | None
    ) -> FeatureFlag | None:
        with self._lock:
            for flag in self._flags:
                if (
                    flag.name == name
                    and flag.scope == scope
                    and flag.scope_identifier == scope_identifier
                ):
                    return copy.deepcopy(flag)
        return None

    def get_all_entries(
        self, scope_identifiers: Mapping[ScopeLevel, str | None]
    ) -> list[ConfigurationEntry]:
        with self._lock:
            visible = [
                copy.deepcopy(e)
                for e in self._entries
                if _visible(e.scope, e.scope_identifier, scope_identifiers)
            ]
        return sorted(visible, key=lambda e: e.scope, reverse=True)

    def get_all_flags(
        self, scope_identifiers: Mapping[ScopeLevel, str | None]
    ) -> list[FeatureFlag]:
        with self._lock:
            visible = [
                copy.deepcopy(f)
                for f in self._flags
                if _visible(f.scope, f.scope_identifier, scope_identifiers)
            ]
        return sorted(visible, key=lambda f: f.scope, reverse=True)

    def set_entry(self, entry: ConfigurationEntry) -> ConfigurationEntry:
        stored = copy.deepcopy(entry)
        with self._lock:
            index = self._find_index(
                self._entries, "key", entry.key, entry.scope, entry.scope_identifier
            )
            if index is None:
                self._entries.append(stored)
            else:
                stored.created_at = self._entries[index].created_at
                stored.created_by = self._entries[index].created_by
                stored.updated_at = datetime.now(timezone.utc)
                self._entries[index] = stored
        return copy.deepcopy(stored)

    def set_flag(self, flag: FeatureFlag) -> FeatureFlag:
        stored = copy.deepcopy(flag)
        with self._lock:
            index = self._find_index(
                self._flags, "name", flag.name, flag.scope, flag.scope_identifier
            )
            if index is None:
                self._flags.append(stored)
            else:
                stored.created_at = self._flags[index].created_at
                stored.created_by = self._flags[index].created_by
                stored.updated_at = datetime.now(timezone.utc)
                self._flags[index] = stored
        return copy.deepcopy(stored)

    def delete_entry(
        self, key: str, scope: ScopeLevel, scope_identifier: str | None
    ) -> bool:
        with self._lock:
            for i, entry in enumerate(self._entries):
                if (
                    entry.key == key
                    and entry.scope == scope
                    and entry.scope_identifier == scope_identifier
                ):
                    del self._entries[i]
                    return True
        return False

    def delete_flag(
        self, name: str, scope: ScopeLevel, scope_identifier: str | None
    ) -> bool:
        with self._lock:
            for i, flag in enumerate(self._flags):
                if (
                    flag.name == name
                    and flag.scope == scope
                    and flag.scope_identifier == scope_identifier
                ):
                    del self._flags[i]
                    return True
        return False

    def _find_index(
        self,
        records: list[Any],
        name_field: str,
        name: str,
        scope: ScopeLevel,
        scope_identifier: str | None,
    ) -> int | None:
        if self._match_by_name_first:
            for i, record in enumerate(records):
                if getattr(record, name_field) == name:
                    return i
        for i, record in enumerate(records):
            if (
                getattr(record, name_field) == name
                and record.scope == scope
                and record.scope_identifier == scope_identifier
            ):
                return i
        return None
