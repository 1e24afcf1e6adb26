"""
Exception classes for the domain enforcer system.

All exceptions inherit from DomainEnforcerError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class DomainEnforcerError(Exception):
    """Base exception for all domain enforcer errors."""

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


class ValidationError(DomainEnforcerError):
    """Raised when a domain entry cannot be normalized."""

    pass


class ConfigurationError(DomainEnforcerError):
    """Raised when configuration values are unusable (relative paths, bad limits)."""

    pass


class HostsReadError(DomainEnforcerError):
    """Raised when the live hosts file cannot be read."""

    pass


class StagingError(DomainEnforcerError):
    """Raised when staged temp files cannot be written."""

    pass


class PrivilegedCommandError(DomainEnforcerError):
    """Raised when the privileged command chain exits non-zero."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
        exit_status: Optional[int] = None,
    ) -> None:
        super().__init__(code, message, details)
        self.exit_status = exit_status


class AuthorizationCanceledError(PrivilegedCommandError):
    """Raised when the user dismisses the administrator authorization prompt."""

    pass


class VerificationError(DomainEnforcerError):
    """Raised when the hosts file does not reflect the applied state."""

    pass


class DomainSourceError(DomainEnforcerError):
    """Raised when the active domain list cannot be loaded."""

    pass
