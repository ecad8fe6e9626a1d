"""ConfigurationResolver unit tests."""

import pytest
from conftest import FailingRepository, RecordingRepository
from structlog.testing import capture_logs

from k1s0_scoped_config import (
    ChangeEvent,
    ChangeKind,
    ConfigurationEntry,
    ConfigurationResolver,
    InMemoryCacheClient,
    InMemoryChangeNotifier,
    ResolutionContext,
    ScopeLevel,
    ValidationError,
)


def make_entry(key: str, value: object, scope: ScopeLevel = ScopeLevel.GLOBAL, identifier: str | None = None) -> ConfigurationEntry:
    return ConfigurationEntry(key=key, value=value, scope=scope, scope_identifier=identifier)


def limit_repository() -> RecordingRepository:
    return RecordingRepository(
        entries=[
            make_entry("limit", 10),
            make_entry("limit", 50, ScopeLevel.TENANT, "acme"),
        ]
    )


def test_unknown_key_returns_default(repository: RecordingRepository) -> None:
    """No entry at any scope yields exactly the default."""
    resolver = ConfigurationResolver(repository)
    sentinel = object()
    assert resolver.resolve("missing", ResolutionContext(), sentinel) is sentinel
    assert resolver.resolve("missing", ResolutionContext(tenant_id="acme"), 7) == 7


def test_limit_scenario() -> None:
    """Tenant override wins for its tenant; others fall back to Global."""
    resolver = ConfigurationResolver(limit_repository())
    assert resolver.resolve("limit", ResolutionContext(tenant_id="acme"), 0) == 50
    assert resolver.resolve("limit", ResolutionContext(tenant_id="other"), 0) == 10


def test_removing_tenant_entry_falls_back_to_global() -> None:
    repo = limit_repository()
    resolver = ConfigurationResolver(repo)
    ctx = ResolutionContext(tenant_id="acme")
    assert resolver.resolve("limit", ctx, 0) == 50
    repo.delete_entry("limit", ScopeLevel.TENANT, "acme")
    assert resolver.resolve("limit", ctx, 0) == 10


def test_user_scope_beats_tenant_scope() -> None:
    repo = limit_repository()
    repo.set_entry(make_entry("limit", 99, ScopeLevel.USER, "u1"))
    resolver = ConfigurationResolver(repo)
    assert resolver.resolve("limit", ResolutionContext(tenant_id="acme", user_id="u1"), 0) == 99


def test_walk_probes_every_level(repository: RecordingRepository) -> None:
    resolver = ConfigurationResolver(repository)
    resolver.resolve("k", ResolutionContext(tenant_id="acme", environment="prod"))
    assert repository.lookups == [
        ("k", ScopeLevel.USER, None),
        ("k", ScopeLevel.TENANT, "acme"),
        ("k", ScopeLevel.REGION, None),
        ("k", ScopeLevel.ENVIRONMENT, "prod"),
        ("k", ScopeLevel.GLOBAL, None),
    ]


def test_walk_stops_at_first_match() -> None:
    repo = limit_repository()
    resolver = ConfigurationResolver(repo)
    resolver.resolve("limit", ResolutionContext(tenant_id="acme"), 0)
    assert [scope for _, scope, _ in repo.lookups] == [ScopeLevel.USER, ScopeLevel.TENANT]


def test_incompatible_type_falls_through_to_broader_scope() -> None:
    """A value that cannot be converted does not block a broader fallback."""
    repo = RecordingRepository(
        entries=[
            make_entry("timeout", 30),
            make_entry("timeout", "not-a-number", ScopeLevel.TENANT, "acme"),
        ]
    )
    resolver = ConfigurationResolver(repo)
    assert resolver.resolve("timeout", ResolutionContext(tenant_id="acme"), 5) == 30


def test_value_is_converted_to_target_type() -> None:
    repo = RecordingRepository(entries=[make_entry("limit", "50"), make_entry("debug", "true")])
    resolver = ConfigurationResolver(repo)
    ctx = ResolutionContext()
    assert resolver.resolve("limit", ctx, 0) == 50
    assert resolver.resolve("debug", ctx, False) is True
    assert resolver.resolve("limit", ctx, target_type=float) == 50.0
    assert resolver.resolve("limit", ctx) == "50"


def test_repository_failure_degrades_to_default() -> None:
    """Reads never raise; the failure is logged as a warning."""
    resolver = ConfigurationResolver(FailingRepository())
    with capture_logs() as logs:
        assert resolver.resolve("limit", ResolutionContext(), 3) == 3
    assert any(
        log["log_level"] == "warning" and log["key"] == "limit" for log in logs
    )


def test_cache_hit_skips_repository() -> None:
    repo = limit_repository()
    resolver = ConfigurationResolver(repo, InMemoryCacheClient())
    ctx = ResolutionContext(tenant_id="acme")
    assert resolver.resolve("limit", ctx, 0) == 50
    repo.lookups.clear()
    assert resolver.resolve("limit", ctx, 0) == 50
    assert repo.lookups == []


def test_default_is_cached(repository: RecordingRepository) -> None:
    cache = InMemoryCacheClient()
    resolver = ConfigurationResolver(repository, cache, cache_ttl=60)
    assert resolver.resolve("missing", ResolutionContext(), 8) == 8
    assert cache.get("config:missing") == 8


def test_per_key_cache_is_shared_across_tenants() -> None:
    """Per-key caching: another tenant inside the TTL sees the cached value."""
    resolver = ConfigurationResolver(limit_repository(), InMemoryCacheClient())
    assert resolver.resolve("limit", ResolutionContext(tenant_id="acme"), 0) == 50
    assert resolver.resolve("limit", ResolutionContext(tenant_id="other"), 0) == 50


def test_per_context_cache_keys_isolate_tenants() -> None:
    resolver = ConfigurationResolver(limit_repository(), InMemoryCacheClient(), per_context_keys=True)
    assert resolver.resolve("limit", ResolutionContext(tenant_id="acme"), 0) == 50
    assert resolver.resolve("limit", ResolutionContext(tenant_id="other"), 0) == 10
    assert resolver.cache_key("limit", ResolutionContext(tenant_id="acme")) == "config:limit:acme:::"


def test_write_invalidates_cache() -> None:
    """A write is visible immediately even if the cached TTL has not elapsed."""
    repo = RecordingRepository(entries=[make_entry("k", "old")])
    resolver = ConfigurationResolver(repo, InMemoryCacheClient(), cache_ttl=300)
    ctx = ResolutionContext()
    assert resolver.resolve("k", ctx, "default") == "old"
    resolver.set_value("k", "new", ScopeLevel.GLOBAL)
    assert resolver.resolve("k", ctx, "default") == "new"


def test_resolve_at_scope_reads_one_level() -> None:
    resolver = ConfigurationResolver(limit_repository())
    ctx = ResolutionContext(tenant_id="acme")
    assert resolver.resolve_at_scope("limit", ScopeLevel.GLOBAL, ctx, 0) == 10
    assert resolver.resolve_at_scope("limit", ScopeLevel.TENANT, ctx, 0) == 50
    assert resolver.resolve_at_scope("limit", ScopeLevel.REGION, ctx, -1) == -1


def test_resolve_at_scope_failure_returns_default() -> None:
    resolver = ConfigurationResolver(FailingRepository())
    assert resolver.resolve_at_scope("limit", ScopeLevel.GLOBAL, ResolutionContext(), 4) == 4


def test_resolve_with_source_reports_scope() -> None:
    resolver = ConfigurationResolver(limit_repository())
    resolved = resolver.resolve_with_source("limit", ResolutionContext(tenant_id="acme"), 0)
    assert resolved.value == 50
    assert resolved.scope is ScopeLevel.TENANT
    assert resolved.found is True
    missing = resolver.resolve_with_source("nope", ResolutionContext(), "d")
    assert missing.value == "d"
    assert missing.found is False
    assert missing.scope is None


def test_get_all_values_most_specific_wins() -> None:
    repo = limit_repository()
    repo.set_entry(make_entry("theme", "dark"))
    resolver = ConfigurationResolver(repo)
    assert resolver.get_all_values(ResolutionContext(tenant_id="acme")) == {"limit": 50, "theme": "dark"}
    assert resolver.get_all_values(ResolutionContext(tenant_id="other")) == {"limit": 10, "theme": "dark"}


def test_get_all_values_failure_returns_empty() -> None:
    assert ConfigurationResolver(FailingRepository()).get_all_values(ResolutionContext()) == {}


def test_set_value_derives_identifier_from_context(repository: RecordingRepository) -> None:
    resolver = ConfigurationResolver(repository)
    stored = resolver.set_value(
        "limit", 70, "tenant", context=ResolutionContext(tenant_id="acme"), updated_by="admin"
    )
    assert stored.scope is ScopeLevel.TENANT
    assert stored.scope_identifier == "acme"
    assert stored.updated_by == "admin"


def test_set_value_drops_global_identifier(repository: RecordingRepository) -> None:
    resolver = ConfigurationResolver(repository)
    with capture_logs() as logs:
        stored = resolver.set_value("limit", 1, ScopeLevel.GLOBAL, "acme")
    assert stored.scope_identifier is None
    assert any(log["event"] == "global_scope_identifier_ignored" for log in logs)


@pytest.mark.parametrize(("key", "scope"), [("", ScopeLevel.GLOBAL), ("limit", "galaxy")])
def test_set_value_validation(repository: RecordingRepository, key: str, scope: object) -> None:
    """Invalid writes are rejected before reaching the repository."""
    resolver = ConfigurationResolver(repository)
    with pytest.raises(ValidationError):
        resolver.set_value(key, 1, scope)  # type: ignore[arg-type]
    assert repository.get_all_entries({ScopeLevel.GLOBAL: None}) == []


def test_set_value_repository_error_propagates() -> None:
    resolver = ConfigurationResolver(FailingRepository())
    with pytest.raises(ConnectionError):
        resolver.set_value("limit", 1, ScopeLevel.GLOBAL)


def test_set_and_delete_publish_change_events(repository: RecordingRepository) -> None:
    notifier = InMemoryChangeNotifier()
    events: list[ChangeEvent] = []
    notifier.subscribe(ChangeKind.CONFIGURATION, events.append)
    resolver = ConfigurationResolver(repository, notifier=notifier)

    resolver.set_value("limit", 5, ScopeLevel.REGION, "eu-west")
    assert resolver.delete_value("limit", ScopeLevel.REGION, "eu-west") is True
    assert resolver.delete_value("limit", ScopeLevel.REGION, "eu-west") is False

    assert [(e.name, e.scope, e.scope_identifier, e.deleted) for e in events] == [
        ("limit", ScopeLevel.REGION, "eu-west", False),
        ("limit", ScopeLevel.REGION, "eu-west", True),
    ]


def test_delete_value_invalidates_cache() -> None:
    repo = limit_repository()
    resolver = ConfigurationResolver(repo, InMemoryCacheClient(), per_context_keys=True)
    ctx = ResolutionContext(tenant_id="acme")
    assert resolver.resolve("limit", ctx, 0) == 50
    resolver.delete_value("limit", ScopeLevel.TENANT, context=ctx)
    assert resolver.resolve("limit", ctx, 0) == 10


def test_refresh_only_logs(repository: RecordingRepository) -> None:
    cache = InMemoryCacheClient()
    cache.set("config:limit", 1)
    with capture_logs() as logs:
        ConfigurationResolver(repository, cache).refresh()
    assert cache.get("config:limit") == 1
    assert logs[0]["event"] == "configuration_cache_refresh_requested"


def test_cached_value_of_another_type_is_a_miss() -> None:
    """A default cached for one type never hides a stored value for another."""
    repo = RecordingRepository(entries=[make_entry("mode", "fast")])
    resolver = ConfigurationResolver(repo, InMemoryCacheClient())
    ctx = ResolutionContext()
    assert resolver.resolve("mode", ctx, 0) == 0
    assert resolver.resolve("mode", ctx, "slow") == "fast"


def test_cached_bool_is_not_served_as_int() -> None:
    cache = InMemoryCacheClient()
    cache.set("config:limit", True)
    resolver = ConfigurationResolver(limit_repository(), cache)
    assert resolver.resolve("limit", ResolutionContext(), 0) == 10


def test_update_keeps_original_author(repository: RecordingRepository) -> None:
    resolver = ConfigurationResolver(repository)
    resolver.set_value("limit", 1, ScopeLevel.GLOBAL, updated_by="alice")
    stored = resolver.set_value("limit", 2, ScopeLevel.GLOBAL, updated_by="bob")
    assert stored.created_by == "alice"
    assert stored.updated_by == "bob"
