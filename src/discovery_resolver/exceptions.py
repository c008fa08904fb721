"""
Exception classes for the discovery resolver.

All exceptions inherit from ResolverError and provide structured
error information with codes, messages, and optional details.
Provider-side failures never leave the chain resolver as exceptions;
they are converted into synthetic error records there.
"""

from typing import Optional


class ResolverError(Exception):
    """Base exception for all discovery resolver errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class FetchError(ResolverError):
    """Base class for failures talking to a single provider."""

    pass


class TransportError(FetchError):
    """Raised on connection failures, timeouts and non-4xx error statuses."""

    pass


class ProtocolError(FetchError):
    """Raised when a provider answers with a malformed or inconsistent document."""

    pass


class ChainAborted(ResolverError):
    """Raised inside the chain resolver to stop following a delegation chain."""

    pass


class ConfigurationError(ResolverError):
    """Raised when operator configuration is missing or inconsistent."""

    pass


class PersistenceError(ResolverError):
    """Raised when a file-backed cache cannot be read or written."""

    pass
