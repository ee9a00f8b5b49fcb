"""Structured logging for sish client.

Handlers are attached to the ``sish_client`` logger only, so enabling
tunnel logs never touches the host application's root logger setup.
"""

import logging
import sys

import structlog
from structlog.typing import Processor

PACKAGE_LOGGER = "sish_client"


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: str | None = None,
) -> None:
    """Route sish client logs to stderr (and optionally a file).

    Calling this again replaces the handlers installed by the previous call.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, output JSON formatted logs
        log_file: Optional file path to write logs to
    """
    log_level = getattr(logging, level.upper())

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in package_logger.handlers[:]:
        if getattr(handler, "_sish_client_handler", False):
            package_logger.removeHandler(handler)
            handler.close()
    package_logger.setLevel(log_level)
    package_logger.propagate = False

    # stdout is left to the host application
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    handlers[0].setFormatter(logging.Formatter("%(message)s"))

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(log_level)
        handler._sish_client_handler = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
        if json_format
        else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger for a sish client module.

    Args:
        name: Logger name (usually __name__)

    Returns:
        structlog logger
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]
