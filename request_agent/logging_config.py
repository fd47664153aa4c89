"""Console logging setup and the default log sink."""

import json
import logging
from typing import Any

__all__ = ["configure_logs", "LoggingSink"]

HANDLER_NAME = "request_agent.console"


def configure_logs(level: int = logging.INFO) -> None:
    """Configure console logging.

    Sets up:
    - Root logger at WARNING level.
    - Framework loggers (httpx, httpcore) at WARNING level.
    - Application loggers (request_agent) at the given level.
    - Structured format with timestamp, level, module, and line number.

    Calling it again replaces the handler it installed instead of adding a
    second one.
    """
    log_format = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s"
    date_format = "%d/%m/%y %H:%M:%S"

    formatter = logging.Formatter(log_format, date_format)
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.set_name(HANDLER_NAME)

    # Root logger
    root = logging.getLogger()
    root.setLevel(logging.WARNING)
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
        existing.close()
    root.addHandler(handler)

    # Suppress verbose framework loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    # Application loggers
    logging.getLogger("request_agent").setLevel(level)


class LoggingSink:
    """Default ``log`` collaborator: writes records as JSON through a logger.

    Records with an ``error_message`` are logged at ERROR, everything else
    (request diagnostics) at INFO.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("request_agent.requests")

    def __call__(self, record: dict[str, Any]) -> None:
        level = logging.ERROR if "error_message" in record else logging.INFO
        self._logger.log(level, json.dumps(record, default=str, sort_keys=True))
