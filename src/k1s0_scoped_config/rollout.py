"""Deterministic percentage rollout bucketing.

Buckets are derived from SHA-256 so the same (flag, tenant, user, region)
tuple lands in the same bucket in every process and on every Python build.
"""

from __future__ import annotations

import hashlib

from .scope import ResolutionContext


def rollout_key(flag_name: str, context: ResolutionContext) -> str:
    """Build the hash input ``name:tenant:user:region``; absent ids are empty."""
    return ":".join(
        (
            flag_name,
            context.tenant_id or "",
            context.user_id or "",
            context.region or "",
        )
    )


def stable_hash(value: str) -> int:
    """First 8 bytes of SHA-256 over UTF-8, read as an unsigned big-endian int."""
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def rollout_bucket(flag_name: str, context: ResolutionContext) -> int:
    """Return the subject's bucket in 1..100."""
    return stable_hash(rollout_key(flag_name, context)) % 100 + 1


def is_in_rollout(flag_name: str, percentage: int, context: ResolutionContext) -> bool:
    if percentage >= 100:
        return True
    if percentage <= 0:
        return False
    return rollout_bucket(flag_name, context) <= percentage
