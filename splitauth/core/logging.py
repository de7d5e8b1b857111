"""splitauth logging configuration.

Every handler installed here carries a RedactingFilter: bearer tokens,
JWTs, refresh secrets and passwords are masked before a record is
formatted, whichever format is active.
"""

import json
import logging
import re
import sys
from typing import Literal

LOGGER_PREFIX = "splitauth"

REDACTED = "[REDACTED]"

DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Passed via ``extra=`` by the auth flows; copied into structured output
CONTEXT_FIELDS = ("user_id", "session_id", "jti", "client_ip")

_SECRET_PATTERNS = (
    re.compile(r"(?i)\b(Bearer)\s+[A-Za-z0-9._~+/=-]+"),
    re.compile(r"\beyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*"),
    re.compile(
        r"(?i)(\"?(?:refresh_token|access_token|password|authorization)\"?\s*[:=]\s*\"?)"
        r"[^\"'\s,}&]+"
    ),
)


def redact(text: str) -> str:
    """Mask credentials embedded in a log message."""
    text = _SECRET_PATTERNS[0].sub(rf"\1 {REDACTED}", text)
    text = _SECRET_PATTERNS[1].sub(REDACTED, text)
    return _SECRET_PATTERNS[2].sub(rf"\1{REDACTED}", text)


class RedactingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = ()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per log line, tagged with the service name."""

    def __init__(self, service: str = LOGGER_PREFIX):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "service": self.service,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = str(value)
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(log_entry, default=str)


def _build_handler(format_type: str, service: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(JSONFormatter(service=service))
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(RedactingFilter())
    return handler


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
    service: str = LOGGER_PREFIX,
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: 'structured' for JSON lines, 'dev' for readable lines
        service: Value of the ``service`` field in structured output
    """
    numeric_level = getattr(logging, level.upper())
    root = logging.getLogger()
    root.handlers = [_build_handler(format_type, service)]
    root.setLevel(numeric_level)

    # One access line per request drowns out the auth flow logs
    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    # Bound parameters include refresh secrets; only show SQL when debugging
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if numeric_level == logging.DEBUG else logging.WARNING
    )

    get_logger("logging").info(f"Logging configured: level={level}, format={format_type}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the splitauth namespace."""
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")
