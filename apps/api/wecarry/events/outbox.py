"""
Post-commit event emission.

Events are queued on the Session and dispatched only once its transaction
commits. A rollback discards them.
"""

from __future__ import annotations

import logging

from sqlalchemy import event as sa_event
from sqlalchemy.orm import Session

from wecarry.events.dispatcher import EventDispatcher
from wecarry.events.types import Event

logger = logging.getLogger(__name__)

_PENDING_KEY = "wecarry_pending_events"

_dispatcher: EventDispatcher | None = None


def set_dispatcher(dispatcher: EventDispatcher | None) -> None:
    """Install the process-wide dispatcher (None disables dispatch)."""
    global _dispatcher
    _dispatcher = dispatcher


def get_dispatcher() -> EventDispatcher | None:
    return _dispatcher


def emit_after_commit(db: Session, event: Event) -> None:
    """Queue event to be dispatched when db next commits."""
    db.info.setdefault(_PENDING_KEY, []).append(event)


def pending_events(db: Session) -> list[Event]:
    return list(db.info.get(_PENDING_KEY, []))


@sa_event.listens_for(Session, "after_commit")
def _dispatch_pending(session: Session) -> None:
    events = session.info.pop(_PENDING_KEY, None)
    if not events:
        return
    dispatcher = _dispatcher
    if dispatcher is None:
        logger.debug("No event dispatcher installed, dropping %d events", len(events))
        return
    for event in events:
        dispatcher.dispatch(event)


@sa_event.listens_for(Session, "after_rollback")
def _discard_pending(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)
