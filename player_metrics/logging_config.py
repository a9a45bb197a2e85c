"""
Logging configuration.

Text logs for development, JSON lines for aggregation in production.
Modules log through logging.getLogger(__name__); nothing here runs on import.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

HANDLER_NAME = "player_metrics.console"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", fmt: str = "text") -> logging.Logger:
    """
    Configure the root logger.

    Safe to call repeatedly: the handler installed by a previous call is
    replaced, and handlers added by anything else are left in place.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
        fmt: "json" for structured output, anything else for plain text

    Returns:
        The configured root logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if fmt == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        if handler.get_name() == HANDLER_NAME:
            root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.set_name(HANDLER_NAME)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root_logger
