"""Errors raised while collecting and publishing test results."""


class RoxClientError(Exception):
    """Base class for all ROX client errors."""


class ConfigurationError(RoxClientError):
    """Raised when server, credentials, project or workspace settings are unusable."""


class ValidationError(RoxClientError):
    """Raised when a roxable test annotation is malformed."""


class TransportError(RoxClientError):
    """Raised when the ROX server cannot be reached or answers unexpectedly."""


class PersistenceError(RoxClientError):
    """Raised when a workspace file cannot be read or written."""
