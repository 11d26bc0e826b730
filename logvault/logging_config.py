"""
Structured logging for LogVault.

Every record becomes one flat JSON object. Engine components pass their
fields through ``extra=`` (``component``, ``event``, ``tenant_id``,
``reason``); the request trace id is picked up from a context variable set
by ``TracingMiddleware``.
"""
import contextvars
import json
import logging
import logging.config
import os
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import yaml

trace_id_var = contextvars.ContextVar("trace_id", default=None)

LEVEL_ORDER = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}

# LogRecord attributes that are not user supplied extras
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime", "taskName"}


def get_trace_id() -> Optional[str]:
    return trace_id_var.get()


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def record_to_entry(record: logging.LogRecord) -> Dict[str, Any]:
    entry = {
        "timestamp": _iso(record.created),
        "level": record.levelname,
        "logger": record.name,
        "msg": record.getMessage(),
        "trace_id": getattr(record, "trace_id", None) or get_trace_id(),
        "tenant_id": getattr(record, "tenant_id", None),
        "component": getattr(record, "component", None),
    }
    for key, value in record.__dict__.items():
        if key not in _RECORD_ATTRS and key not in entry:
            entry[key] = value
    return entry


def log_lifecycle_event(event_type: str, message: str, **fields):
    """Log a retention or purge outcome with its structured fields"""
    logging.getLogger("logvault.lifecycle").info(message, extra={
        "component": "lifecycle",
        "event": event_type,
        **fields
    })


class JsonFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry = record_to_entry(record)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class MemoryLogHandler(logging.Handler):
    """Ring buffer of recent service log entries, read by ``GET /v1/logs/tail``."""

    def __init__(self, max_size: int = 10000):
        super().__init__()
        self.max_size = max_size
        self._entries = deque(maxlen=max_size)
        self._buffer_lock = threading.Lock()

    def emit(self, record: logging.LogRecord):
        try:
            entry = json.loads(json.dumps(record_to_entry(record), default=str))
            if record.exc_info:
                entry["exception"] = logging.Formatter().formatException(record.exc_info)
        except (TypeError, ValueError):
            self.handleError(record)
            return
        with self._buffer_lock:
            self._entries.append(entry)

    def get_logs(self, since: Optional[str] = None, limit: int = 1000,
                 tenant_id: Optional[str] = None, min_level: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._buffer_lock:
            entries = list(self._entries)

        if since:
            try:
                since_dt = datetime.fromisoformat(since.replace("Z", "+00:00"))
            except ValueError:
                since_dt = None
            if since_dt is not None:
                if since_dt.tzinfo is None:
                    since_dt = since_dt.replace(tzinfo=timezone.utc)
                entries = [e for e in entries
                           if datetime.fromisoformat(e["timestamp"].replace("Z", "+00:00")) >= since_dt]
        if tenant_id:
            entries = [e for e in entries if e.get("tenant_id") == tenant_id]
        if min_level:
            floor = LEVEL_ORDER.get(min_level.upper(), 0)
            entries = [e for e in entries if LEVEL_ORDER.get(e.get("level"), 0) >= floor]

        return entries[-limit:] if limit else entries

    def clear(self) -> None:
        with self._buffer_lock:
            self._entries.clear()


memory_handler = MemoryLogHandler()


def _default_config(level: str, fmt: str) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
            "text": {"format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": fmt,
                "stream": "ext://sys.stdout",
            }
        },
        "loggers": {
            "logvault": {"level": level, "handlers": ["console"], "propagate": False},
            "uvicorn": {"level": level, "handlers": ["console"], "propagate": False},
        },
        "root": {"level": level, "handlers": ["console"]},
    }


def setup_logging(config_path: str = "LOGGING.yaml"):
    """Configure logging from ``config_path`` when it exists, else from defaults.

    ``LOG_LEVEL`` and ``LOG_FORMAT`` (json|text) override whatever the file says.
    The ring buffer handler is attached to the ``logvault`` logger exactly once.
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    fmt = os.getenv("LOG_FORMAT", "json")

    cfg = None
    if os.path.exists(config_path):
        try:
            with open(config_path, "r") as f:
                cfg = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Could not load {config_path}: {e}")
    if not cfg:
        cfg = _default_config(level, fmt)

    for handler in cfg.get("handlers", {}).values():
        if "formatter" in handler and fmt in cfg.get("formatters", {}):
            handler["formatter"] = fmt
    for logger_cfg in cfg.get("loggers", {}).values():
        logger_cfg["level"] = level

    logging.config.dictConfig(cfg)

    service_logger = logging.getLogger("logvault")
    if memory_handler not in service_logger.handlers:
        service_logger.addHandler(memory_handler)
    return cfg


def get_memory_handler() -> MemoryLogHandler:
    return memory_handler
