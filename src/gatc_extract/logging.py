"""Structured JSON logging for the extractor pipelines.

Every record is one JSON object on the ``extractor`` logger.  Fields come from
three layers, later ones winning: process-wide context (``set_global_context``),
scoped context (``logging_context``) and the call's own fields.  Scopes are held
in a ``ContextVar`` so each worker task only sees the scopes it pushed itself.
"""

from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator

_LOGGER_NAME = "extractor"
_LEVELS = ("debug", "info", "warning", "error", "critical")
_global_context: dict[str, Any] = {}
_scoped_context: ContextVar[tuple[tuple[str, Any], ...]] = ContextVar("extractor_log_scope", default=())


def configure_logging(level: int | str | None = None) -> None:
    """Attach a stream handler to the ``extractor`` logger (idempotent).

    ``level`` defaults to ``LOG_LEVEL`` from the environment, then ``INFO``.
    """

    log = logging.getLogger(_LOGGER_NAME)
    if log.handlers:
        return
    chosen = level if level is not None else os.getenv("LOG_LEVEL", "INFO")
    if isinstance(chosen, str):
        chosen = getattr(logging, chosen.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    log.addHandler(handler)
    log.setLevel(chosen)
    log.propagate = False


def set_global_context(**fields: Any) -> None:
    _global_context.update({k: v for k, v in fields.items() if v is not None})


@contextmanager
def logging_context(**fields: Any) -> Iterator[None]:
    """Add ``fields`` to every record emitted by the current task inside the block."""

    scope = _scoped_context.get() + tuple((k, v) for k, v in fields.items() if v is not None)
    token = _scoped_context.set(scope)
    try:
        yield
    finally:
        _scoped_context.reset(token)


def current_context() -> dict[str, Any]:
    merged = dict(_global_context)
    merged.update(_scoped_context.get())
    return merged


def jlog(level: str, /, **fields: Any) -> None:
    """Emit one JSON record; unknown levels are logged as ``info``."""

    name = level.lower()
    if name not in _LEVELS:
        name = "info"
    record = {"ts": datetime.now(timezone.utc).isoformat(), "level": name, **current_context(), **fields}
    getattr(logging.getLogger(_LOGGER_NAME), name)(json.dumps(record, ensure_ascii=False, sort_keys=True, default=str))


def rowlog(event: str, *, row_id: int, url: str, level: str = "info", **kw: Any) -> None:
    jlog(level, event=event, row_id=row_id, url=url, **kw)


__all__ = ["configure_logging", "current_context", "jlog", "logging_context", "rowlog", "set_global_context"]
