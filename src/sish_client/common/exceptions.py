"""Custom exceptions for sish client."""


class SishClientError(Exception):
    """Base exception for all sish client errors."""
    pass


class ConfigurationError(SishClientError):
    """Raised when tunnel configuration is invalid."""
    pass


class ProcessError(SishClientError):
    """Raised when the ssh process cannot be launched or managed."""
    pass


class TunnelClosedError(SishClientError):
    """Raised when a tunnel closes before it became ready."""

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.exit_code = exit_code
