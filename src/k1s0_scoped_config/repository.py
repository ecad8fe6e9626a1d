"""ConfigurationRepository abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping

from .models import ConfigurationEntry, FeatureFlag
from .scope import ScopeLevel


class ConfigurationRepository(ABC):
    """Storage port for configuration entries and feature flags.

    Implementations own persistence, timeouts and connection handling.
    ``get_all_*`` return results ordered from the most to the least specific
    scope so that the first occurrence of a name is the one that wins.
    """

    @abstractmethod
    def get_entry(
        self, key: str, scope: ScopeLevel, scope_identifier: str | None
    ) -> ConfigurationEntry | None:
        """Return the entry stored at exactly (key, scope, scope_identifier)."""
        ...

    @abstractmethod
    def get_flag(
        self, name: str, scope: ScopeLevel, scope_identifier: str | None
    ) -> FeatureFlag | None:
        """Return the flag stored at exactly (name, scope, scope_identifier)."""
        ...

    @abstractmethod
    def get_all_entries(
        self, scope_identifiers: Mapping[ScopeLevel, str | None]
    ) -> list[ConfigurationEntry]: ...

    @abstractmethod
    def get_all_flags(
        self, scope_identifiers: Mapping[ScopeLevel, str | None]
    ) -> list[FeatureFlag]: ...

    @abstractmethod
    def set_entry(self, entry: ConfigurationEntry) -> ConfigurationEntry:
        """Upsert an entry and return the stored copy."""
        ...

    @abstractmethod
    def set_flag(self, flag: FeatureFlag) -> FeatureFlag:
        """Upsert a flag and return the stored copy."""
        ...

    @abstractmethod
    def delete_entry(
        self, key: str, scope: ScopeLevel, scope_identifier: str | None
    ) -> bool: ...

    @abstractmethod
    def delete_flag(
        self, name: str, scope: ScopeLevel, scope_identifier: str | None
    ) -> bool: ...
