"""
Exception classes for the discovery console.

All exceptions inherit from DiscoveryError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class DiscoveryError(Exception):
    """Base exception for all discovery console errors."""

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


class ValidationError(DiscoveryError):
    """Raised when a discovery target or option fails local validation."""

    pass


class NetworkError(DiscoveryError):
    """Raised when the Discovery Service cannot be reached (transport, timeout)."""

    pass


class ProtocolError(DiscoveryError):
    """Raised when a response body cannot be decoded into the expected shape."""

    pass


class ServiceError(DiscoveryError):
    """Raised when the Discovery Service answers with a non-2xx status."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int,
        details: Optional[dict] = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(code, message, details)

    @property
    def is_not_found(self) -> bool:
        """True when the service does not know the requested session."""
        return self.status_code == 404

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class PersistenceError(DiscoveryError):
    """Raised when persistence operations fail (file I/O, HMAC validation)."""

    pass


class TamperingError(PersistenceError):
    """Raised when HMAC validation fails, indicating data tampering."""

    pass


class InvalidTransitionError(DiscoveryError):
    """Raised when a coordinator command is not valid in the current state."""

    pass
