"""Structured logging for compile passes.

Purpose
    Every diagnostic the library emits goes through one package logger with a
    ``context`` dictionary attached to the record, so handlers can render or
    ship the fields without parsing message text.

Contents
    - ``TRACE_ID``: context variable holding the active trace identifier.
    - ``get_logger``: the package logger (silent until the host adds handlers).
    - ``bind_trace_id`` / ``trace_scope``: set the identifier permanently or
      for the duration of a ``with`` block.
    - ``log_debug`` / ``log_info`` / ``log_error``: leveled emitters.
    - ``make_event``: payload describing one record of a compile pass.

System Integration
    Decoders report ``config_decoded`` and ``config_invalid``; file groups
    report ``config_file_read`` and ``file_group_walked``; the compiler reports
    ``record_merged``, ``configuration_compiled`` and ``compile_failed``. The
    domain layer and the merge engine never log; they raise.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Final, Iterator, Mapping

TRACE_ID: ContextVar[str | None] = ContextVar("lib_config_tree_trace_id", default=None)
"""Identifier copied into the ``context`` of every record emitted here."""

_LOGGER: Final[logging.Logger] = logging.getLogger("lib_config_tree")
_LOGGER.addHandler(logging.NullHandler())


def get_logger() -> logging.Logger:
    """Return the ``lib_config_tree`` logger so applications can attach handlers."""

    return _LOGGER


def bind_trace_id(trace_id: str | None) -> None:
    """Bind *trace_id* for all later events in the current context; ``None`` clears it.

    Examples
    --------
    >>> bind_trace_id("compile-7")
    >>> TRACE_ID.get()
    'compile-7'
    >>> bind_trace_id(None)
    >>> TRACE_ID.get() is None
    True
    """

    TRACE_ID.set(trace_id)


@contextmanager
def trace_scope(trace_id: str | None) -> Iterator[None]:
    """Bind *trace_id* inside the ``with`` block and restore the previous value after.

    Examples
    --------
    >>> with trace_scope("cli-42"):
    ...     TRACE_ID.get()
    'cli-42'
    >>> TRACE_ID.get() is None
    True
    """

    token = TRACE_ID.set(trace_id)
    try:
        yield
    finally:
        TRACE_ID.reset(token)


def log_debug(message: str, **fields: Any) -> None:
    _LOGGER.log(logging.DEBUG, message, extra={"context": _context(fields)})


def log_info(message: str, **fields: Any) -> None:
    _LOGGER.log(logging.INFO, message, extra={"context": _context(fields)})


def log_error(message: str, **fields: Any) -> None:
    _LOGGER.log(logging.ERROR, message, extra={"context": _context(fields)})


def make_event(record: str, source: str | None, payload: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Return the fields describing one record: ``record``, ``source`` and *payload*.

    Examples
    --------
    >>> make_event("defaults", None, {"position": 1})
    {'record': 'defaults', 'source': None, 'position': 1}
    """

    event: dict[str, Any] = {"record": record, "source": source}
    event.update(payload or {})
    return event


def _context(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {"trace_id": TRACE_ID.get(), **fields}
