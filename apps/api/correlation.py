"""
Request correlation IDs.

Each HTTP request gets a UUID (set by the middleware in `main.py`). It is
returned in the `X-Correlation-ID` response header and attached to the
request log line and to every storage write/delete log line, so one search
finds everything a request touched (for example: which request deleted a run).

A `ContextVar` holds the ID for the current request, so storage code can read
it without route handlers passing it around. Outside a request (scripts,
tests calling storage directly) it is None.
"""

from __future__ import annotations

from contextvars import ContextVar
from uuid import UUID

_correlation_id_var: ContextVar[UUID | None] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: UUID) -> None:
    _correlation_id_var.set(correlation_id)


def get_correlation_id() -> UUID | None:
    """Correlation ID of the request being handled, or None outside a request."""

    return _correlation_id_var.get()
