"""Application-wide logging setup."""

import logging
import sys

from statement_import.api.middleware.logging import JSONLogFormatter

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_NAME = "statement_import"


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Configure the root logger.

    Safe to call more than once; the handler is only installed the first time.

    Args:
        level: Log level ('DEBUG', 'INFO', 'WARNING', 'ERROR')
        json_format: Emit JSON lines instead of plain text
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if any(h.get_name() == _HANDLER_NAME for h in root_logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(log_level)
    if json_format:
        handler.setFormatter(JSONLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(handler)

    # httpx logs full request URLs at INFO for every OpenAI call.
    logging.getLogger("httpx").setLevel(logging.WARNING)
