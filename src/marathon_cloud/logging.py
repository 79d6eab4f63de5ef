"""
Logging setup for Marathon Cloud CLI.

Console output goes through rich's RichHandler on stderr; ``log_json``
switches to one JSON object per line for CI log ingestion.
"""

from __future__ import annotations

import json
import logging

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "marathon_cloud"


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            data["exc"] = self.formatException(record.exc_info)
        return json.dumps(data)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package namespace."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure package logging.

    Safe to call more than once; previously installed handlers are replaced.

    Args:
        level: Log level name.
        json_output: Emit JSON lines instead of rich console output.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if json_output:
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(_JsonFormatter())
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))

    logger.addHandler(handler)
    logger.setLevel(level.upper())


__all__ = ["get_logger", "setup_logging", "ROOT_LOGGER"]
