from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Mapping


# Fields bound for the current flow (request_id, opportunity_id, ...), stamped on every record.
_LOG_CONTEXT: ContextVar[Mapping[str, Any]] = ContextVar("log_context", default={})

# Attributes every LogRecord carries; anything else came from extra={} or the bound context.
_STANDARD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

# Third-party loggers that are chatty at DEBUG (font lookup, image encoding).
_NOISY_LOGGERS = ("matplotlib", "PIL")


def get_log_context() -> Dict[str, Any]:
    return dict(_LOG_CONTEXT.get())


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    # Binds fields on top of the current context; the previous context is restored on exit.
    merged = {**_LOG_CONTEXT.get(), **fields}
    token = _LOG_CONTEXT.set(merged)
    try:
        yield dict(merged)
    finally:
        _LOG_CONTEXT.reset(token)


class ContextFilter(logging.Filter):
    # Copies bound context onto the record. Explicit extra={} values win.
    def filter(self, record: logging.LogRecord) -> bool:
        context = _LOG_CONTEXT.get()
        record.request_id = context.get("request_id")
        for key, value in context.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value, ensure_ascii=False)
        return value
    except TypeError:
        return str(value)


class JsonFormatter(logging.Formatter):
    # One JSON object per line.
    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).replace(microsecond=0)
        payload: Dict[str, Any] = {
            "ts": ts.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(
            {key: _jsonable(value) for key, value in vars(record).items() if key not in _STANDARD_ATTRS}
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_logs: bool = True) -> None:
    # Configure root logging once.
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())

    if json_logs:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s request_id=%(request_id)s %(message)s"
        ))

    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
