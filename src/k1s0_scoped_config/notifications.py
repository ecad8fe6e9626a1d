"""Change notification publishing."""

from __future__ import annotations

from typing import Callable, Protocol

import structlog

from .models import ChangeEvent, ChangeKind
from .scope import ScopeLevel

logger = structlog.stdlib.get_logger(__name__)

ChangeHandler = Callable[[ChangeEvent], None]


class ChangeNotifier(Protocol):
    """Receives a ChangeEvent after every successful write."""

    def publish(self, event: ChangeEvent) -> None: ...


class InMemoryChangeNotifier:
    """In-process publish/subscribe for change events.

    A failing handler is logged and skipped; it never fails the write that
    produced the event.
    """

    def __init__(self) -> None:
        self._handlers: dict[ChangeKind, list[ChangeHandler]] = {}

    def subscribe(self, kind: ChangeKind, handler: ChangeHandler) -> None:
        """Subscribe a handler to one kind of change."""
        self._handlers.setdefault(kind, []).append(handler)

    def unsubscribe(self, kind: ChangeKind) -> None:
        """Remove all handlers for a kind of change."""
        self._handlers.pop(kind, None)

    def publish(self, event: ChangeEvent) -> None:
        for handler in list(self._handlers.get(event.kind, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "change_notification_failed",
                    kind=event.kind.value,
                    name=event.name,
                    scope=event.scope.name,
                    error=str(e),
                )


def notify(
    notifier: ChangeNotifier | None,
    kind: ChangeKind,
    name: str,
    scope: ScopeLevel,
    scope_identifier: str | None,
    *,
    deleted: bool = False,
) -> None:
    """Publish a ChangeEvent, logging instead of raising on failure."""
    if notifier is None:
        return
    event = ChangeEvent(
        kind=kind,
        name=name,
        scope=scope,
        scope_identifier=scope_identifier,
        deleted=deleted,
    )
    try:
        notifier.publish(event)
    except Exception as e:
        logger.error("change_notification_failed", kind=kind.value, name=name, error=str(e))
