"""
Structured JSON logging for the tax calculation engine.

Every engine and service logs through ``get_logger`` with an event name as
the message and its data in ``extra``.  ``StructuredFormatter`` renders a
record as one JSON line: money stays an exact Decimal string, dates are ISO
and enums log by value.  Request identity (correlation id, client, tax year)
is bound once per assessment with ``LogContext.bind`` and stamped on every
line emitted inside it, including lines from worker threads that copy the
context.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator

_LOGGER_PREFIX = "tax_kernel"


class LogContext:
    """Request-scoped log fields held in context variables."""

    _fields: dict[str, ContextVar[str | None]] = {
        name: ContextVar(f"tax_log_{name}", default=None)
        for name in ("correlation_id", "client_id", "tax_year")
    }

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Bound fields only; unset fields are omitted."""
        return {
            name: value
            for name, var in cls._fields.items()
            if (value := var.get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in cls._fields.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """Bind fields for the duration of a block, restoring prior values after.

        ``None`` values and names that are not context fields are ignored.
        """
        tokens = [
            (cls._fields[name], cls._fields[name].set(str(value)))
            for name, value in fields.items()
            if value is not None and name in cls._fields
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


_RECORD_KEYS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _encode(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_KEYS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_encode)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    # TaxEngineError subclasses expose a code and their offending values as attributes
    fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


def get_logger(name: str) -> logging.Logger:
    """Logger ``tax_kernel.<name>``; engines use ``engines.<calculator>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler (stderr by default) to ``tax_kernel``; later calls do nothing."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    target = handler if handler is not None else logging.StreamHandler(sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Undo ``configure_logging``; used by the test suite."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
