"""Feature flag evaluation with hierarchical lookup, targeting and rollout."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

import structlog
from opentelemetry.trace import Status, StatusCode

from .cache import CacheClient
from .metrics import cache_hits_total, flag_evaluations_total, repository_errors_total, tracer
from .models import (
    ChangeKind,
    EvaluationReason,
    EvaluationResult,
    FeatureFlag,
    FeatureFlagRule,
    RuleOperator,
)
from .notifications import ChangeNotifier, notify
from .repository import ConfigurationRepository
from .rollout import is_in_rollout
from .rules import evaluate_rules
from .scope import ResolutionContext, ScopeLevel, scope_identifiers, walk_scopes
from .settings import DEFAULT_CACHE_TTL_SECONDS
from .validation import normalize_scope_identifier, validate_flag, validate_key, validate_scope

logger = structlog.stdlib.get_logger(__name__)

# Only decisions that reached the rollout step are cached.
_CACHEABLE_REASONS = frozenset(
    {EvaluationReason.ROLLOUT_INCLUDED, EvaluationReason.ROLLOUT_EXCLUDED}
)


def _normalize_rule(rule: FeatureFlagRule) -> FeatureFlagRule:
    if isinstance(rule.operator, RuleOperator):
        return rule
    operator = RuleOperator.lookup(str(rule.operator))
    return dataclasses.replace(rule, operator=operator if operator is not None else rule.operator)


class FeatureFlagEvaluator:
    """Evaluates feature flags for a resolution context.

    The first flag found walking User -> Tenant -> Region -> Environment ->
    Global is used as a whole; definitions are never merged across scopes.
    Any failure during evaluation yields False.
    """

    def __init__(
        self,
        repository: ConfigurationRepository,
        cache: CacheClient | None = None,
        *,
        cache_ttl: float = DEFAULT_CACHE_TTL_SECONDS,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._notifier = notifier

    @staticmethod
    def cache_key(name: str, context: ResolutionContext) -> str:
        return f"feature:{name}:{context.tenant_id or ''}:{context.user_id or ''}"

    def is_enabled(self, name: str, context: ResolutionContext) -> bool:
        with tracer.start_as_current_span("CheckFeatureFlag") as span:
            span.set_attribute("feature.name", name)
            span.set_attribute("feature.tenant", context.tenant_id or "none")
            flag_evaluations_total.add(1)
            cache_key = self.cache_key(name, context)
            try:
                if self._cache is not None:
                    cached = self._cache.get(cache_key)
                    if isinstance(cached, bool):
                        span.set_attribute("feature.enabled", cached)
                        span.set_attribute("feature.source", "cache")
                        cache_hits_total.add(1, {"kind": "feature"})
                        return cached
                result = self._evaluate(name, context)
                if self._cache is not None and result.reason in _CACHEABLE_REASONS:
                    self._cache.set(cache_key, result.enabled, self._cache_ttl)
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                repository_errors_total.add(1, {"kind": "feature"})
                logger.warning("feature_flag_check_failed", feature=name, error=str(e))
                return False

            span.set_attribute("feature.enabled", result.enabled)
            span.set_attribute("feature.reason", result.reason)
            span.set_attribute("feature.source", "repository")
            if result.scope is not None:
                span.set_attribute("feature.scope", result.scope.name)
            logger.debug(
                "feature_flag_evaluated",
                feature=name,
                enabled=result.enabled,
                reason=result.reason,
                scope=result.scope.name if result.scope is not None else None,
            )
            return result.enabled

    def evaluate(self, name: str, context: ResolutionContext) -> EvaluationResult:
        """Uncached evaluation that reports why the decision was reached."""
        try:
            return self._evaluate(name, context)
        except Exception as e:
            repository_errors_total.add(1, {"kind": "feature"})
            logger.warning("feature_flag_check_failed", feature=name, error=str(e))
            return EvaluationResult(flag_name=name, enabled=False, reason=EvaluationReason.ERROR)

    def get_variant(
        self, name: str, context: ResolutionContext, default: str | None = None
    ) -> str | None:
        """Variant of the most specific flag definition, or default."""
        try:
            flag = self._find(name, context)
        except Exception as e:
            repository_errors_total.add(1, {"kind": "feature"})
            logger.warning("feature_flag_variant_failed", feature=name, error=str(e))
            return default
        if flag is None or flag.variant is None:
            return default
        return flag.variant

    def get_all_flags(self, context: ResolutionContext) -> dict[str, bool]:
        """Evaluate every flag visible to the context, keyed by name."""
        try:
            flags = self._repository.get_all_flags(scope_identifiers(context))
        except Exception as e:
            repository_errors_total.add(1, {"kind": "feature"})
            logger.warning("feature_flag_listing_failed", error=str(e))
            return {}
        result: dict[str, bool] = {}
        for flag in flags:
            if flag.name not in result:
                result[flag.name] = self.is_enabled(flag.name, context)
        return result

    def set_flag(
        self,
        flag: FeatureFlag,
        *,
        context: ResolutionContext | None = None,
        updated_by: str | None = None,
    ) -> FeatureFlag:
        """Validate and store a flag definition.

        Raises:
            ValidationError: name, scope, rollout percentage or a rule is
                invalid; nothing is written.
            Exception: whatever the repository raises is logged and re-raised.
        """
        validate_key(flag.name, "name")
        level = validate_scope(flag.scope)
        if level is ScopeLevel.GLOBAL and flag.scope_identifier:
            logger.warning(
                "global_scope_identifier_ignored",
                feature=flag.name,
                scope_identifier=flag.scope_identifier,
            )
        candidate = dataclasses.replace(
            flag,
            scope=level,
            scope_identifier=normalize_scope_identifier(level, flag.scope_identifier, context),
            rules=[_normalize_rule(rule) for rule in flag.rules],
            updated_at=datetime.now(timezone.utc),
            created_by=flag.created_by if flag.created_by is not None else updated_by,
            updated_by=updated_by if updated_by is not None else flag.updated_by,
        )
        validate_flag(candidate)

        with tracer.start_as_current_span("SetFeatureFlag") as span:
            span.set_attribute("feature.name", candidate.name)
            try:
                stored = self._repository.set_flag(candidate)
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.error("feature_flag_set_failed", feature=candidate.name, error=str(e))
                raise
            self._invalidate(candidate.name, context)
            notify(
                self._notifier,
                ChangeKind.FEATURE_FLAG,
                candidate.name,
                level,
                candidate.scope_identifier,
            )
            span.set_attribute("feature.success", True)
        logger.info(
            "feature_flag_set",
            feature=candidate.name,
            enabled=candidate.enabled,
            scope=level.name,
            rollout_percentage=candidate.rollout_percentage,
        )
        return stored

    def delete_flag(
        self,
        name: str,
        scope: ScopeLevel | str,
        scope_identifier: str | None = None,
        *,
        context: ResolutionContext | None = None,
    ) -> bool:
        validate_key(name, "name")
        level = validate_scope(scope)
        identifier = normalize_scope_identifier(level, scope_identifier, context)
        try:
            deleted = self._repository.delete_flag(name, level, identifier)
        except Exception as e:
            logger.error("feature_flag_delete_failed", feature=name, error=str(e))
            raise
        if deleted:
            self._invalidate(name, context)
            notify(
                self._notifier,
                ChangeKind.FEATURE_FLAG,
                name,
                level,
                identifier,
                deleted=True,
            )
            logger.info("feature_flag_deleted", feature=name, scope=level.name)
        return deleted

    def _find(self, name: str, context: ResolutionContext) -> FeatureFlag | None:
        for scope, identifier in walk_scopes(context):
            flag = self._repository.get_flag(name, scope, identifier)
            if flag is not None:
                return flag
        return None

    def _evaluate(self, name: str, context: ResolutionContext) -> EvaluationResult:
        flag = self._find(name, context)
        if flag is None:
            return EvaluationResult(
                flag_name=name, enabled=False, reason=EvaluationReason.FLAG_NOT_FOUND
            )

        def decided(enabled: bool, reason: str) -> EvaluationResult:
            return EvaluationResult(
                flag_name=name,
                enabled=enabled,
                variant=flag.variant,
                reason=reason,
                scope=flag.scope,
            )

        if not flag.enabled:
            return decided(False, EvaluationReason.FLAG_DISABLED)
        if flag.rules and not evaluate_rules(flag.rules, context):
            return decided(False, EvaluationReason.RULES_NOT_MET)
        if is_in_rollout(name, flag.rollout_percentage, context):
            return decided(True, EvaluationReason.ROLLOUT_INCLUDED)
        return decided(False, EvaluationReason.ROLLOUT_EXCLUDED)

    def _invalidate(self, name: str, context: ResolutionContext | None) -> None:
        # Only the key for the writer's own context is known; other
        # tenant/user decisions expire by TTL.
        if self._cache is None:
            return
        cache_key = self.cache_key(name, context or ResolutionContext())
        try:
            self._cache.delete(cache_key)
        except Exception as e:
            logger.warning("cache_invalidation_failed", cache_key=cache_key, error=str(e))
