"""In-process synchronous event dispatcher."""

from __future__ import annotations

import logging
from typing import Callable

from wecarry.core.errors import WeCarryError
from wecarry.core.structured_logging import build_log_context
from wecarry.db.enums import EventKind
from wecarry.events.types import Event

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


class ListenerRegistrationError(WeCarryError):
    """A listener name was registered twice."""

    pass


class EventDispatcher:
    """
    Routes events to named listeners.

    Listeners run synchronously in registration order. A failing listener is
    logged and skipped; it never affects the caller or the other listeners.
    """

    def __init__(self) -> None:
        self._listeners: dict[EventKind, list[tuple[str, Listener]]] = {}
        self._names: set[str] = set()

    def register(self, kind: EventKind, name: str, listener: Listener) -> None:
        if name in self._names:
            raise ListenerRegistrationError(f"Listener already registered: {name}")
        self._names.add(name)
        self._listeners.setdefault(kind, []).append((name, listener))

    def listeners(self, kind: EventKind) -> list[str]:
        """Names of the listeners for kind, in dispatch order."""
        return [name for name, _ in self._listeners.get(kind, [])]

    def dispatch(self, event: Event) -> int:
        """Run every listener for event.kind. Returns how many succeeded."""
        succeeded = 0
        for name, listener in self._listeners.get(event.kind, []):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Event listener %s failed for %s",
                    name,
                    event.kind.value,
                    extra=build_log_context(event=event.kind.value),
                )
                continue
            succeeded += 1
        return succeeded

    def clear(self) -> None:
        self._listeners.clear()
        self._names.clear()
