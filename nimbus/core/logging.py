"""
Structured JSON logging configuration.
NEVER logs: user source code, tool stdout, credentials.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from nimbus.core.request_context import get_component_id, get_request_id

# Extra fields copied into the JSON line when present on the record
EXTRA_FIELDS = (
    "request_id",
    "component_id",
    "stage",
    "tool",
    "exit_code",
    "duration_ms",
    "method",
    "path",
    "status_code",
    "client_ip",
)


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        # Fall back to the request (and build) in flight
        if "request_id" not in log_data:
            request_id = get_request_id()
            if request_id:
                log_data["request_id"] = request_id
        if "component_id" not in log_data:
            component_id = get_component_id()
            if component_id:
                log_data["component_id"] = component_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.addHandler(handler)

    # Reduce noise from uvicorn access logs (we log ourselves)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)

    # boto3 is chatty at INFO
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
