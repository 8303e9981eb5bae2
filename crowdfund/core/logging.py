"""
Logging for the crowdfund backend.

Records carry the request id of the request that produced them plus the
pledge-related fields (user_id, pledge_id, event_type, error_code) that
log_event attaches. Production writes one JSON object per line; other
environments write a single readable line.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOGGER_NAME = "crowdfund"

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

CORRELATION_FIELDS = ("request_id", "user_id", "pledge_id", "event_type", "error_code")

MAX_FIELD_LENGTH = 500

_LATENCY_BUCKETS = ((10, "<10ms"), (100, "10-100ms"), (500, "100-500ms"), (1000, "500-1000ms"))


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return default if rid is None else rid


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    """Coarse latency label; exact timings are not logged."""
    if latency_ms is None:
        return "unknown"
    for upper, label in _LATENCY_BUCKETS:
        if latency_ms < upper:
            return label
    return ">=1000ms"


def _utc_timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON document per record, correlation fields included when set."""

    def format(self, record: logging.LogRecord) -> str:
        doc: Dict[str, Any] = {
            "timestamp": _utc_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        doc.update(
            (name, getattr(record, name))
            for name in CORRELATION_FIELDS
            if getattr(record, name, None) is not None
        )
        if record.exc_info:
            doc["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(doc, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        tags = "".join(
            f" [{name}={getattr(record, name)}]"
            for name in ("request_id", "pledge_id", "error_code")
            if getattr(record, name, None)
        )
        line = f"{_utc_timestamp(record)} {record.levelname:<7} [{LOGGER_NAME}]{tags} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(env: str = "development") -> None:
    """Install the crowdfund handler; JSON in production."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(RequestIdFilter())

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.handlers = [handler]
    logger.propagate = True

    logging.getLogger("uvicorn.access").propagate = False


def _truncate(value: Any) -> str:
    try:
        text = value if isinstance(value, str) else str(value)
    except Exception:
        return "<unserializable>"
    if len(text) > MAX_FIELD_LENGTH:
        return text[:MAX_FIELD_LENGTH] + "...<truncated>"
    return text


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str],
    user_id: Optional[str] = None,
    pledge_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
):
    """Log msg with correlation fields; extra values are stringified and truncated."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging(os.getenv("ENV", "development"))

    fields: Dict[str, object] = {key: _truncate(value) for key, value in (extra or {}).items()}
    correlation = {
        "request_id": request_id or get_request_id(),
        "user_id": user_id,
        "pledge_id": pledge_id,
        "event_type": event_type,
        "error_code": error_code,
    }
    # An unset correlation field does not hide the same key from extra
    fields.update((key, value) for key, value in correlation.items() if value is not None or key not in fields)
    logger.log(logging.getLevelName(level.upper()), msg, extra=fields)
