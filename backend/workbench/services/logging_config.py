"""Structured logging configuration for the facade workbench."""
import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Extra attributes the services attach through ``logger.x(..., extra={...})``
_EXTRA_FIELDS = (
    "entity", "item_type", "request_token", "written", "duration_ms",
    "request_id", "http_method", "http_path", "http_status",
)


class JSONFormatter(logging.Formatter):
    """JSON structured log formatter for production."""
    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)
        return json.dumps(log_entry, default=str)


class EntityTextFormatter(logging.Formatter):
    """Human-readable formatter that appends the entity tag when present."""
    def format(self, record):
        line = super().format(record)
        entity = getattr(record, "entity", None)
        return f"{line} [{entity}]" if entity else line


def entity_extra(kind: str, key: Any, **more: Any) -> Dict[str, Any]:
    """Build the ``extra`` mapping used to tag a log line with an entity."""
    extra = {"entity": f"{kind}:{key}"}
    extra.update(more)
    return extra


def setup_logging(level: str = "INFO", json_output: bool = True):
    """Configure application logging."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(EntityTextFormatter(
            "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
        ))

    root.handlers = [handler]

    # Suppress noisy loggers
    for name in ["uvicorn.access", "httpcore", "httpx"]:
        logging.getLogger(name).setLevel(logging.WARNING)
