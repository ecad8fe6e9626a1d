"""Hierarchical configuration resolution."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from opentelemetry.trace import Status, StatusCode

from .cache import CacheClient
from .coercion import coerce
from .metrics import (
    cache_hits_total,
    config_resolutions_total,
    repository_errors_total,
    tracer,
)
from .models import ChangeKind, ConfigurationEntry, ResolvedValue
from .notifications import ChangeNotifier, notify
from .repository import ConfigurationRepository
from .scope import ResolutionContext, ScopeLevel, scope_identifiers, walk_scopes
from .settings import DEFAULT_CACHE_TTL_SECONDS
from .validation import normalize_scope_identifier, validate_entry, validate_key, validate_scope

logger = structlog.stdlib.get_logger(__name__)


def _target_type(default: Any, target_type: type | None) -> type | None:
    if target_type is not None:
        return target_type
    if default is not None:
        return type(default)
    return None


def _cached_value_fits(cached: Any, target: type | None) -> bool:
    # A cached value of another type is a miss; only the walk converts.
    if target is None:
        return True
    if isinstance(cached, bool) and target in (int, float):
        return False
    return isinstance(cached, target)


class ConfigurationResolver:
    """Resolves configuration values User -> Tenant -> Region -> Environment -> Global.

    Reads never raise: repository failures are logged and the caller's
    default is returned. Writes validate before touching the repository and
    invalidate the cache key the resolver itself would read.
    """

    def __init__(
        self,
        repository: ConfigurationRepository,
        cache: CacheClient | None = None,
        *,
        cache_ttl: float = DEFAULT_CACHE_TTL_SECONDS,
        per_context_keys: bool = False,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._per_context_keys = per_context_keys
        self._notifier = notifier

    def cache_key(self, key: str, context: ResolutionContext) -> str:
        """Cache key for a resolution.

        By default the key ignores the context, so two tenants reading the same
        key inside one TTL window share whichever value was cached first.
        """
        if not self._per_context_keys:
            return f"config:{key}"
        return ":".join(
            (
                "config",
                key,
                context.tenant_id or "",
                context.user_id or "",
                context.region or "",
                context.environment or "",
            )
        )

    def resolve(
        self,
        key: str,
        context: ResolutionContext,
        default: Any = None,
        target_type: type | None = None,
    ) -> Any:
        """Return the most specific value for key that converts to the target type.

        target_type defaults to the type of ``default``; with neither, the
        stored value is returned as is. The result, including a fallback to
        ``default``, is cached for the configured TTL. A cached value that is
        not already of the target type is ignored and the scopes are walked
        again.
        """
        with tracer.start_as_current_span("GetConfiguration") as span:
            span.set_attribute("config.key", key)
            config_resolutions_total.add(1)
            target = _target_type(default, target_type)
            cache_key = self.cache_key(key, context)
            try:
                if self._cache is not None:
                    cached = self._cache.get(cache_key)
                    if cached is not None and _cached_value_fits(cached, target):
                        span.set_attribute("config.source", "cache")
                        cache_hits_total.add(1, {"kind": "config"})
                        return cached
                resolved = self._walk(key, context, default, target)
                if self._cache is not None:
                    self._cache.set(cache_key, resolved.value, self._cache_ttl)
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                repository_errors_total.add(1, {"kind": "config"})
                logger.warning(
                    "configuration_resolution_failed_using_default",
                    key=key,
                    error=str(e),
                )
                return default

            scope_name = resolved.scope.name if resolved.scope is not None else "DEFAULT"
            span.set_attribute("config.source", "repository")
            span.set_attribute("config.scope", scope_name)
            logger.debug(
                "configuration_resolved",
                key=key,
                value=resolved.value,
                scope=scope_name,
            )
            return resolved.value

    def resolve_with_source(
        self,
        key: str,
        context: ResolutionContext,
        default: Any = None,
        target_type: type | None = None,
    ) -> ResolvedValue:
        """Uncached resolve that also reports which scope supplied the value."""
        try:
            return self._walk(key, context, default, _target_type(default, target_type))
        except Exception as e:
            repository_errors_total.add(1, {"kind": "config"})
            logger.warning(
                "configuration_resolution_failed_using_default",
                key=key,
                error=str(e),
            )
            return ResolvedValue(default)

    def resolve_at_scope(
        self,
        key: str,
        scope: ScopeLevel,
        context: ResolutionContext,
        default: Any = None,
        target_type: type | None = None,
    ) -> Any:
        """Read exactly one scope, bypassing the hierarchy walk and the cache."""
        with tracer.start_as_current_span("GetConfiguration") as span:
            span.set_attribute("config.key", key)
            span.set_attribute("config.requested_scope", scope.name)
            try:
                entry = self._repository.get_entry(key, scope, context.identifier_for(scope))
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                repository_errors_total.add(1, {"kind": "config"})
                logger.warning(
                    "configuration_resolution_failed_using_default",
                    key=key,
                    scope=scope.name,
                    error=str(e),
                )
                return default
            if entry is None:
                return default
            result = coerce(entry.value, _target_type(default, target_type))
            return result.value if result.ok else default

    def get_all_values(self, context: ResolutionContext) -> dict[str, Any]:
        """All values visible to the context; the most specific entry per key wins."""
        try:
            entries = self._repository.get_all_entries(scope_identifiers(context))
        except Exception as e:
            repository_errors_total.add(1, {"kind": "config"})
            logger.warning("configuration_listing_failed", error=str(e))
            return {}
        values: dict[str, Any] = {}
        for entry in entries:
            if entry.key not in values:
                values[entry.key] = entry.value
        return values

    def set_value(
        self,
        key: str,
        value: Any,
        scope: ScopeLevel | str,
        scope_identifier: str | None = None,
        *,
        context: ResolutionContext | None = None,
        updated_by: str | None = None,
    ) -> ConfigurationEntry:
        """Store a value at a scope.

        Raises:
            ValidationError: key or scope is invalid; nothing is written.
            Exception: whatever the repository raises is logged and re-raised.
        """
        validate_key(key, "key")
        level = validate_scope(scope)
        if level is ScopeLevel.GLOBAL and scope_identifier:
            logger.warning("global_scope_identifier_ignored", key=key, scope_identifier=scope_identifier)
        entry = ConfigurationEntry(
            key=key,
            value=value,
            scope=level,
            scope_identifier=normalize_scope_identifier(level, scope_identifier, context),
            updated_at=datetime.now(timezone.utc),
            created_by=updated_by,
            updated_by=updated_by,
        )
        validate_entry(entry)

        with tracer.start_as_current_span("SetConfiguration") as span:
            span.set_attribute("config.key", key)
            span.set_attribute("config.scope", level.name)
            try:
                stored = self._repository.set_entry(entry)
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.error("configuration_set_failed", key=key, scope=level.name, error=str(e))
                raise
            self._invalidate(key, context)
            notify(self._notifier, ChangeKind.CONFIGURATION, key, level, entry.scope_identifier)
            span.set_attribute("config.success", True)
        logger.info(
            "configuration_set",
            key=key,
            scope=level.name,
            scope_identifier=entry.scope_identifier,
        )
        return stored

    def delete_value(
        self,
        key: str,
        scope: ScopeLevel | str,
        scope_identifier: str | None = None,
        *,
        context: ResolutionContext | None = None,
    ) -> bool:
        """Delete the entry at one scope. Returns False when nothing was stored there."""
        validate_key(key, "key")
        level = validate_scope(scope)
        identifier = normalize_scope_identifier(level, scope_identifier, context)
        try:
            deleted = self._repository.delete_entry(key, level, identifier)
        except Exception as e:
            logger.error("configuration_delete_failed", key=key, scope=level.name, error=str(e))
            raise
        if deleted:
            self._invalidate(key, context)
            notify(self._notifier, ChangeKind.CONFIGURATION, key, level, identifier, deleted=True)
            logger.info("configuration_deleted", key=key, scope=level.name, scope_identifier=identifier)
        return deleted

    def refresh(self) -> None:
        # Cached keys are not tracked, so entries simply age out by TTL.
        logger.info("configuration_cache_refresh_requested")

    def _walk(
        self,
        key: str,
        context: ResolutionContext,
        default: Any,
        target: type | None,
    ) -> ResolvedValue:
        for scope, identifier in walk_scopes(context):
            entry = self._repository.get_entry(key, scope, identifier)
            if entry is None:
                continue
            result = coerce(entry.value, target)
            if result.ok:
                return ResolvedValue(result.value, scope, True)
            logger.debug(
                "configuration_type_mismatch",
                key=key,
                scope=scope.name,
                target_type=getattr(target, "__name__", str(target)),
            )
        return ResolvedValue(default)

    def _invalidate(self, key: str, context: ResolutionContext | None) -> None:
        if self._cache is None:
            return
        cache_key = self.cache_key(key, context or ResolutionContext())
        try:
            self._cache.delete(cache_key)
        except Exception as e:
            logger.warning("cache_invalidation_failed", cache_key=cache_key, error=str(e))

