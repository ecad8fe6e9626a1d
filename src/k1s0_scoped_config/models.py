"""scoped_config data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .scope import ScopeLevel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RuleOperator(str, Enum):
    """Targeting rule comparison operators."""

    EQUALS = "equals"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"

    @classmethod
    def lookup(cls, value: str) -> RuleOperator | None:
        """Find an operator by name, ignoring case. None if unknown."""
        folded = value.casefold()
        for member in cls:
            if member.value.casefold() == folded:
                return member
        return None


@dataclass
class FeatureFlagRule:
    """Attribute-based targeting predicate."""

    attribute: str
    operator: RuleOperator | str = RuleOperator.EQUALS
    value: str = ""


@dataclass
class ConfigurationEntry:
    """A configuration value stored at one scope."""

    key: str
    value: Any
    scope: ScopeLevel = ScopeLevel.GLOBAL
    scope_identifier: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None


@dataclass
class FeatureFlag:
    """A feature flag definition stored at one scope."""

    name: str
    enabled: bool = False
    scope: ScopeLevel = ScopeLevel.GLOBAL
    scope_identifier: str | None = None
    rollout_percentage: int = 100
    variant: str | None = None
    rules: list[FeatureFlagRule] = field(default_factory=list)
    description: str = ""
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None


@dataclass
class EvaluationResult:
    """Outcome of a flag evaluation with the reason it was reached."""

    flag_name: str
    enabled: bool
    variant: str | None = None
    reason: str = ""
    scope: ScopeLevel | None = None


class EvaluationReason:
    """EvaluationResult.reason constants."""

    FLAG_NOT_FOUND: str = "FLAG_NOT_FOUND"
    FLAG_DISABLED: str = "FLAG_DISABLED"
    RULES_NOT_MET: str = "RULES_NOT_MET"
    ROLLOUT_EXCLUDED: str = "ROLLOUT_EXCLUDED"
    ROLLOUT_INCLUDED: str = "ROLLOUT_INCLUDED"
    ERROR: str = "ERROR"


@dataclass
class ResolvedValue:
    """A resolved configuration value and the scope that supplied it."""

    value: Any
    scope: ScopeLevel | None = None
    found: bool = False


class ChangeKind(str, Enum):
    """What a ChangeEvent refers to."""

    CONFIGURATION = "configuration"
    FEATURE_FLAG = "feature_flag"


@dataclass
class ChangeEvent:
    """Notification emitted after a successful write."""

    kind: ChangeKind
    name: str
    scope: ScopeLevel
    scope_identifier: str | None = None
    deleted: bool = False
    timestamp: datetime = field(default_factory=_utcnow)
