"""Scoped logging fields for tracking sessions.

Fields set by ``log_context`` are attached to every record emitted inside
the block. Blocks nest: an inner block layers its fields over the outer
ones and hands the outer fields back when it exits, so a session event
that triggers another session's event keeps its own identifiers.
"""

import logging
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any


class LogContext:
    """Per-thread mapping of fields injected into log records."""

    _local = threading.local()

    @classmethod
    def _fields(cls) -> dict[str, Any]:
        fields: dict[str, Any] | None = getattr(cls._local, "fields", None)
        if fields is None:
            fields = cls._local.fields = {}
        return fields

    @classmethod
    def set(cls, **kwargs: Any) -> None:
        cls._fields().update(kwargs)

    @classmethod
    def get(cls) -> dict[str, Any]:
        """Copy of the fields currently in scope."""
        return dict(cls._fields())

    @classmethod
    def replace(cls, fields: Mapping[str, Any]) -> None:
        cls._local.fields = dict(fields)

    @classmethod
    def clear(cls) -> None:
        cls._local.fields = {}


class ContextFilter(logging.Filter):
    """Copies in-scope LogContext fields onto records that lack them."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in LogContext.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Add fields for the duration of the block, then restore the previous ones.

    ContextFilter must be attached to the handler (see setup_logging).
    """
    outer = LogContext.get()
    LogContext.set(**kwargs)
    try:
        yield
    finally:
        LogContext.replace(outer)


@contextmanager
def log_session_context(session_id: str, **kwargs: Any) -> Iterator[None]:
    """Tag records with a tracking session; the correlation id defaults to it."""
    kwargs.setdefault("correlation_id", session_id)
    with log_context(session_id=session_id, **kwargs):
        yield
