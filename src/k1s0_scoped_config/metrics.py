"""OpenTelemetry instruments for resolution and evaluation."""

from __future__ import annotations

from opentelemetry import metrics, trace

_meter = metrics.get_meter("k1s0_scoped_config", version="0.1.0")

tracer = trace.get_tracer("k1s0_scoped_config", "0.1.0")

config_resolutions_total = _meter.create_counter(
    name="config_resolutions_total",
    description="Total number of configuration resolutions",
    unit="1",
)

flag_evaluations_total = _meter.create_counter(
    name="flag_evaluations_total",
    description="Total number of feature flag evaluations",
    unit="1",
)

cache_hits_total = _meter.create_counter(
    name="engine_cache_hits_total",
    description="Total number of resolutions served from the cache",
    unit="1",
)

repository_errors_total = _meter.create_counter(
    name="engine_repository_errors_total",
    description="Total number of repository failures degraded to defaults",
    unit="1",
)
