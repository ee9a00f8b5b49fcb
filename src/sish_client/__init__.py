"""sish client - reverse tunnels through a sish relay over ssh."""

# High-level API
from .api import managed_tunnel, open_tunnel

# Common utilities
from .common.exceptions import (
    ConfigurationError,
    ProcessError,
    SishClientError,
    TunnelClosedError,
)
from .common.logging import get_logger, setup_logging
from .config import TunnelSessionConfig
from .events import (
    CloseEvent,
    LogEvent,
    ReadyEvent,
    SessionState,
    TunnelEvent,
    TunnelKind,
)
from .parser import LineKind, OutputLine, OutputParser, classify_line, strip_ansi
from .session import TunnelSession

# Package level logger
logger = get_logger(__name__)

__version__ = "0.1.0"


__all__ = [
    # High-level API
    "open_tunnel",
    "managed_tunnel",
    # Session
    "TunnelSession",
    "TunnelSessionConfig",
    # Events
    "TunnelEvent",
    "ReadyEvent",
    "LogEvent",
    "CloseEvent",
    "TunnelKind",
    "SessionState",
    # Output parsing
    "OutputParser",
    "OutputLine",
    "LineKind",
    "classify_line",
    "strip_ansi",
    # Exceptions
    "SishClientError",
    "ConfigurationError",
    "ProcessError",
    "TunnelClosedError",
    # Logging
    "get_logger",
    "setup_logging",
]
