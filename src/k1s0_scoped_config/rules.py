"""Targeting rule evaluation."""

from __future__ import annotations

from collections.abc import Iterable

from .models import FeatureFlagRule, RuleOperator
from .scope import ResolutionContext


def resolve_attribute(attribute: str, context: ResolutionContext) -> str | None:
    """Look up a rule subject in the context.

    Free-form attributes win; otherwise the well-known identifiers are
    matched by case-insensitive name.
    """
    if attribute in context.attributes:
        return context.attributes[attribute]
    name = attribute.lower()
    if name in ("tenantid", "tenant_id"):
        return context.tenant_id
    if name in ("userid", "user_id"):
        return context.user_id
    if name == "region":
        return context.region
    if name == "environment":
        return context.environment
    return None


def _matches(operator: RuleOperator | str, subject: str, expected: str) -> bool:
    op = operator if isinstance(operator, RuleOperator) else RuleOperator.lookup(operator)
    if op is None:
        return False
    subject = subject.casefold()
    expected = expected.casefold()
    if op is RuleOperator.EQUALS:
        return subject == expected
    if op is RuleOperator.CONTAINS:
        return expected in subject
    if op is RuleOperator.STARTS_WITH:
        return subject.startswith(expected)
    return subject.endswith(expected)


def evaluate_rule(rule: FeatureFlagRule, context: ResolutionContext) -> bool:
    subject = resolve_attribute(rule.attribute, context)
    if subject is None:
        return False
    return _matches(rule.operator, subject, rule.value)


def evaluate_rules(rules: Iterable[FeatureFlagRule], context: ResolutionContext) -> bool:
    """True when every rule matches. Stops at the first failing rule."""
    return all(evaluate_rule(rule, context) for rule in rules)
