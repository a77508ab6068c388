"""Structured logging helpers (no emails or names in log context)."""

from typing import Any
from uuid import UUID


def _as_str(value: UUID | str | None) -> str | None:
    return str(value) if value else None


def build_log_context(
    *,
    user_id: UUID | str | None = None,
    org_id: UUID | str | None = None,
    post_id: UUID | str | None = None,
    event: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict containing only identifiers."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = _as_str(user_id)
    if org_id:
        context["org_id"] = _as_str(org_id)
    if post_id:
        context["post_id"] = _as_str(post_id)
    if event:
        context["event"] = event
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
