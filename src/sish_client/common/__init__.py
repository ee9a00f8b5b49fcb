"""Common utilities and shared functionality."""

from .exceptions import (
    ConfigurationError,
    ProcessError,
    SishClientError,
    TunnelClosedError,
)
from .logging import get_logger, setup_logging

__all__ = [
    # Exceptions
    "SishClientError",
    "ConfigurationError",
    "ProcessError",
    "TunnelClosedError",
    # Logging
    "get_logger",
    "setup_logging",
]
