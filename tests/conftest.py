"""Shared fixtures for scoped_config tests."""

from __future__ import annotations

from collections.abc import Iterator, Mapping

import pytest
import structlog
from k1s0_scoped_config import (
    ConfigurationEntry,
    ConfigurationRepository,
    FeatureFlag,
    InMemoryCacheClient,
    InMemoryConfigurationRepository,
    ScopeLevel,
)


class FailingRepository(ConfigurationRepository):
    """Repository whose every call raises, to exercise degraded reads."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or ConnectionError("repository unavailable")

    def get_entry(self, key: str, scope: ScopeLevel, scope_identifier: str | None) -> ConfigurationEntry | None:
        raise self.error

    def get_flag(self, name: str, scope: ScopeLevel, scope_identifier: str | None) -> FeatureFlag | None:
        raise self.error

    def get_all_entries(self, scope_identifiers: Mapping[ScopeLevel, str | None]) -> list[ConfigurationEntry]:
        raise self.error

    def get_all_flags(self, scope_identifiers: Mapping[ScopeLevel, str | None]) -> list[FeatureFlag]:
        raise self.error

    def set_entry(self, entry: ConfigurationEntry) -> ConfigurationEntry:
        raise self.error

    def set_flag(self, flag: FeatureFlag) -> FeatureFlag:
        raise self.error

    def delete_entry(self, key: str, scope: ScopeLevel, scope_identifier: str | None) -> bool:
        raise self.error

    def delete_flag(self, name: str, scope: ScopeLevel, scope_identifier: str | None) -> bool:
        raise self.error


class RecordingRepository(InMemoryConfigurationRepository):
    """In-memory repository that records every single-record lookup."""

    def __init__(self, *args, **kwargs) -> None:  # type: ignore[no-untyped-def]
        super().__init__(*args, **kwargs)
        self.lookups: list[tuple[str, ScopeLevel, str | None]] = []

    def get_entry(self, key: str, scope: ScopeLevel, scope_identifier: str | None) -> ConfigurationEntry | None:
        self.lookups.append((key, scope, scope_identifier))
        return super().get_entry(key, scope, scope_identifier)

    def get_flag(self, name: str, scope: ScopeLevel, scope_identifier: str | None) -> FeatureFlag | None:
        self.lookups.append((name, scope, scope_identifier))
        return super().get_flag(name, scope, scope_identifier)


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


@pytest.fixture
def repository() -> RecordingRepository:
    return RecordingRepository()


@pytest.fixture
def cache() -> InMemoryCacheClient:
    return InMemoryCacheClient()
