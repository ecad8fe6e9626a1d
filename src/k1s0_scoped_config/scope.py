"""Scope hierarchy and resolution context."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import Mapping

from .exceptions import ValidationError


class ScopeLevel(IntEnum):
    """Configuration scope, ordered from least to most specific."""

    GLOBAL = 0
    ENVIRONMENT = 1
    REGION = 2
    TENANT = 3
    USER = 4

    @classmethod
    def parse(cls, value: str | int | ScopeLevel) -> ScopeLevel:
        """Parse a scope from its name (case-insensitive) or integer value."""
        if isinstance(value, ScopeLevel):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                pass
        elif isinstance(value, str):
            member = cls.__members__.get(value.strip().upper())
            if member is not None:
                return member
        raise ValidationError("scope", f"Invalid scope value: {value!r}", code="INVALID_SCOPE")


@dataclass(frozen=True)
class ResolutionContext:
    """Identifiers and attributes presented for a single resolve/evaluate call."""

    tenant_id: str | None = None
    user_id: str | None = None
    region: str | None = None
    environment: str | None = None
    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze a private copy so callers cannot mutate it mid-resolution.
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def __hash__(self) -> int:
        # mappingproxy is unhashable; hash its items instead.
        return hash(
            (
                self.tenant_id,
                self.user_id,
                self.region,
                self.environment,
                frozenset(self.attributes.items()),
            )
        )

    def identifier_for(self, scope: ScopeLevel) -> str | None:
        """Return the identifier this context supplies for ``scope``."""
        if scope is ScopeLevel.USER:
            return self.user_id
        if scope is ScopeLevel.TENANT:
            return self.tenant_id
        if scope is ScopeLevel.REGION:
            return self.region
        if scope is ScopeLevel.ENVIRONMENT:
            return self.environment
        return None


_PROBE_ORDER: tuple[ScopeLevel, ...] = (
    ScopeLevel.USER,
    ScopeLevel.TENANT,
    ScopeLevel.REGION,
    ScopeLevel.ENVIRONMENT,
    ScopeLevel.GLOBAL,
)


def walk_scopes(context: ResolutionContext) -> list[tuple[ScopeLevel, str | None]]:
    """Return the (scope, identifier) pairs to probe, most specific first.

    Every level is returned even when the context has no identifier for it;
    GLOBAL always carries ``None``.
    """
    return [(scope, context.identifier_for(scope)) for scope in _PROBE_ORDER]


def scope_identifiers(context: ResolutionContext) -> dict[ScopeLevel, str | None]:
    """Return the context's identifier for each scope, most specific first."""
    return dict(walk_scopes(context))
