"""One-JSON-object-per-line logging for controller processes.

Router, table and controller log dotted event names (``router.register``,
``controller.publish``...) and put the details in ``extra``; the formatter
lifts those extras to top-level keys so log shippers can index them.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import IO, Any, Dict, Mapping, Optional, Protocol

import orjson


class Logger(Protocol):
    """Subset of :class:`logging.Logger` the router and controller call."""

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


# Attributes every LogRecord carries; anything else came from ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


def _fallback(obj: Any) -> Any:
    if isinstance(obj, BaseException):
        return f"{type(obj).__name__}: {obj}"
    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).decode("utf-8", errors="replace")
    try:
        return repr(obj)
    except Exception:  # pragma: no cover
        return f"<{type(obj).__name__}>"


class JsonFormatter(logging.Formatter):
    """Render records as JSON lines.

    ``fields`` are constant keys stamped on every line (for example the MQTT
    client id), written before the record's own keys so ``extra`` can
    override them.
    """

    def __init__(self, fields: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__()
        self._fields = dict(fields or {})

    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = dict(self._fields)
        line.update(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
        )
        line.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            line["stack"] = record.stack_info
        return orjson.dumps(line, default=_fallback).decode()


def configure_logging(
    level: str = "INFO",
    *,
    name: str = "mqttctl",
    stream: Optional[IO[str]] = None,
    fields: Optional[Mapping[str, Any]] = None,
) -> logging.Logger:
    """Route the root logger through a single JSON handler and return ``name``'s logger."""

    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter(fields))
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "Logger", "configure_logging"]
