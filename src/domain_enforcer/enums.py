"""
Enumeration types for the domain enforcer system.

These enums provide type-safe constants for failure reasons, error codes,
and configuration options throughout the system.
"""

from enum import Enum


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class FailureReason(Enum):
    """Why an apply transaction did not complete."""

    READ_FAILURE = "read_failure"
    WRITE_FAILURE = "write_failure"
    COMMAND_FAILED = "command_failed"
    AUTHORIZATION_CANCELED = "authorization_canceled"
    VERIFICATION_FAILED = "verification_failed"


class DomainValidationErrorCode(Enum):
    """Error codes for domain normalization failures."""

    EMPTY_INPUT = "empty_input"
    MISSING_DOT = "missing_dot"
    CONSECUTIVE_DOTS = "consecutive_dots"
    EDGE_HYPHEN = "edge_hyphen"
    FORBIDDEN_CHARS = "forbidden_chars"
    IDNA_ERROR = "idna_error"


class RecordType(Enum):
    """Address record types queried by the resolver channels."""

    A = "A"
    AAAA = "AAAA"


class TransportKind(Enum):
    """Privileged execution adapters."""

    OSASCRIPT = "osascript"
    SUDO = "sudo"
    SHELL = "shell"


class SyncOutcome(Enum):
    """Result classification of one orchestrator cycle."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
