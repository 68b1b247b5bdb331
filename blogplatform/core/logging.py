"""Logging setup for the blog platform.

Two output modes: ``dev`` (one readable line per record) and ``structured``
(one JSON object per line). Audit lines for rejected credentials and tokens
start with ``SECURITY:``; the structured mode flags them with
``"security": true`` so they can be filtered without parsing messages.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Literal

LOGGER_NAMESPACE = "blogplatform"

SECURITY_PREFIX = "SECURITY:"

DEV_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line with a UTC ISO-8601 timestamp."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        entry = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
        }
        if message.startswith(SECURITY_PREFIX):
            entry["security"] = True
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """Install a stdout handler on the root logger."""
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())

    # SQL echo only when debugging; access logs are left to the proxy
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if level.upper() == "DEBUG" else logging.WARNING
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    get_logger("logging").debug(f"Logging ready (level={level}, format={format_type})")


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``blogplatform`` namespace."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
