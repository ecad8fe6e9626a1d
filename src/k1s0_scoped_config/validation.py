"""Write-path validation rules."""

from __future__ import annotations

from .exceptions import ValidationError
from .models import ConfigurationEntry, FeatureFlag, FeatureFlagRule, RuleOperator
from .scope import ResolutionContext, ScopeLevel


def validate_key(value: str, field: str = "key") -> None:
    """Validate that a configuration key or flag name is present."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, f"{field} is required", code="MISSING_" + field.upper())


def validate_scope(scope: object) -> ScopeLevel:
    """Return scope as a ScopeLevel or raise INVALID_SCOPE."""
    return ScopeLevel.parse(scope)  # type: ignore[arg-type]


def validate_rollout_percentage(percentage: object) -> None:
    """Rollout percentage must be an integer in 0-100. Out-of-range values are rejected."""
    if isinstance(percentage, bool) or not isinstance(percentage, int):
        raise ValidationError(
            "rollout_percentage",
            f"Rollout percentage must be an integer, got {percentage!r}",
        )
    if percentage < 0 or percentage > 100:
        raise ValidationError(
            "rollout_percentage",
            f"Rollout percentage must be between 0 and 100, got {percentage}",
        )


def validate_rule(rule: FeatureFlagRule) -> None:
    if not rule.attribute or not rule.attribute.strip():
        raise ValidationError("rule_attribute", "Rule attribute is required")
    operator = rule.operator
    if not isinstance(operator, RuleOperator) and RuleOperator.lookup(str(operator)) is None:
        raise ValidationError(
            "rule_operator",
            f"Unsupported rule operator: {operator!r}",
        )
    if rule.value is None:
        raise ValidationError("rule_value", "Rule value is required")
    if not isinstance(rule.value, str):
        raise ValidationError(
            "rule_value",
            f"Rule value must be a string, got {type(rule.value).__name__}",
        )


def normalize_scope_identifier(
    scope: ScopeLevel,
    scope_identifier: str | None,
    context: ResolutionContext | None = None,
) -> str | None:
    """Return the identifier a write at ``scope`` is stored under.

    GLOBAL never carries an identifier. A blank identifier means "any entity
    at this level" and is stored as None. When no identifier is given the
    context's identifier for the scope is used.
    """
    if scope is ScopeLevel.GLOBAL:
        return None
    if scope_identifier is None and context is not None:
        scope_identifier = context.identifier_for(scope)
    if scope_identifier is not None and not scope_identifier.strip():
        return None
    return scope_identifier


def validate_entry(entry: ConfigurationEntry) -> None:
    validate_key(entry.key, "key")
    validate_scope(entry.scope)


def validate_flag(flag: FeatureFlag) -> None:
    validate_key(flag.name, "name")
    validate_scope(flag.scope)
    validate_rollout_percentage(flag.rollout_percentage)
    for rule in flag.rules:
        validate_rule(rule)
