"""Engine facade wiring settings, ports, resolver and evaluator together."""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from .cache import CacheClient
from .evaluator import FeatureFlagEvaluator
from .logger import LOGGER_NAME, new_logger
from .memory import InMemoryCacheClient
from .notifications import ChangeNotifier
from .repository import ConfigurationRepository
from .resolver import ConfigurationResolver
from .scope import ResolutionContext
from .settings import EngineSettings


class ScopedConfigEngine:
    """Configuration resolver and flag evaluator sharing one repository and cache."""

    def __init__(
        self,
        settings: EngineSettings,
        repository: ConfigurationRepository,
        cache: CacheClient | None = None,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.cache = cache
        self.logger = structlog.stdlib.get_logger(LOGGER_NAME)
        self.config = ConfigurationResolver(
            repository,
            cache,
            cache_ttl=settings.cache.ttl_seconds,
            per_context_keys=settings.cache.per_context_keys,
            notifier=notifier,
        )
        self.flags = FeatureFlagEvaluator(
            repository,
            cache,
            cache_ttl=settings.cache.ttl_seconds,
            notifier=notifier,
        )

    def context(
        self,
        tenant_id: str | None = None,
        user_id: str | None = None,
        attributes: Mapping[str, str] | None = None,
    ) -> ResolutionContext:
        """Build a context carrying this engine's environment and region."""
        return ResolutionContext(
            tenant_id=tenant_id,
            user_id=user_id,
            region=self.settings.region,
            environment=self.settings.environment,
            attributes=attributes or {},
        )


def create_engine(
    repository: ConfigurationRepository,
    settings: EngineSettings | None = None,
    *,
    cache: CacheClient | None = None,
    notifier: ChangeNotifier | None = None,
    configure_logging: bool = True,
) -> ScopedConfigEngine:
    """Create an engine from settings.

    An in-memory cache is used when caching is enabled and none is given.
    Unless ``configure_logging`` is False, structlog is configured from
    ``settings.log``.
    """
    settings = settings or EngineSettings()
    if not settings.cache.enabled:
        cache = None
    elif cache is None:
        cache = InMemoryCacheClient()
    engine = ScopedConfigEngine(settings, repository, cache, notifier)
    if configure_logging:
        engine.logger = new_logger(
            settings.log.level,
            settings.log.format,
            environment=settings.environment,
            region=settings.region,
        )
    engine.logger.info(
        "scoped_config_engine_created",
        cache_enabled=cache is not None,
        cache_ttl_seconds=settings.cache.ttl_seconds,
        per_context_keys=settings.cache.per_context_keys,
    )
    return engine
