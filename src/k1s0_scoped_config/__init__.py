"""k1s0 scoped config library."""

from .cache import CacheClient
from .coercion import ParseResult, coerce, parse_bool, parse_float, parse_int, parse_raw, parse_str
from .engine import ScopedConfigEngine, create_engine
from .evaluator import FeatureFlagEvaluator
from .exceptions import ScopedConfigError, ScopedConfigErrorCodes, ValidationError
from .logger import new_logger
from .memory import InMemoryCacheClient, InMemoryConfigurationRepository
from .models import (
    ChangeEvent,
    ChangeKind,
    ConfigurationEntry,
    EvaluationReason,
    EvaluationResult,
    FeatureFlag,
    FeatureFlagRule,
    ResolvedValue,
    RuleOperator,
)
from .notifications import ChangeNotifier, InMemoryChangeNotifier
from .repository import ConfigurationRepository
from .resolver import ConfigurationResolver
from .rollout import rollout_bucket
from .rules import evaluate_rules
from .scope import ResolutionContext, ScopeLevel, walk_scopes
from .settings import CacheSection, EngineSettings, LogSection, load_settings

__all__ = [
    "CacheClient",
    "CacheSection",
    "ChangeEvent",
    "ChangeKind",
    "ChangeNotifier",
    "ConfigurationEntry",
    "ConfigurationRepository",
    "ConfigurationResolver",
    "EngineSettings",
    "EvaluationReason",
    "EvaluationResult",
    "FeatureFlag",
    "FeatureFlagEvaluator",
    "FeatureFlagRule",
    "InMemoryCacheClient",
    "InMemoryChangeNotifier",
    "InMemoryConfigurationRepository",
    "LogSection",
    "ParseResult",
    "ResolutionContext",
    "ResolvedValue",
    "RuleOperator",
    "ScopeLevel",
    "ScopedConfigEngine",
    "ScopedConfigError",
    "ScopedConfigErrorCodes",
    "ValidationError",
    "coerce",
    "create_engine",
    "evaluate_rules",
    "load_settings",
    "new_logger",
    "parse_bool",
    "parse_float",
    "parse_int",
    "parse_raw",
    "parse_str",
    "rollout_bucket",
    "walk_scopes",
]
