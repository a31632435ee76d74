"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the block score system.

- Provides clear exception hierarchy
- Separates locally recovered errors from surfaced ones
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
ScoreSystemError (base)
├── ConfigurationError
├── LedgerError
│   └── OutOfOrderEventError     (recovered locally as a no-op)
├── StorageFailureError          (surfaced to the caller, never retried)
└── InvalidQueryError            (bad query parameters)

InvariantViolation is NOT an exception: the quality auditor
reports it as a value and only ever logs it.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """How loudly an error should be logged."""

    LOW = "low"            # expected, handled locally
    MEDIUM = "medium"
    HIGH = "high"          # surfaced to the caller
    CRITICAL = "critical"


# ============================================================
# BASE EXCEPTION
# ============================================================

class ScoreSystemError(Exception):
    """
    Base exception for all score system errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - recoverable: for error handling decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_recoverable: bool = True

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.recoverable = recoverable if recoverable is not None else self.default_recoverable
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging and structured failure results."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(ScoreSystemError):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_recoverable = False

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


# ============================================================
# LEDGER ERRORS
# ============================================================

class LedgerError(ScoreSystemError):
    """Base class for ledger errors."""


class OutOfOrderEventError(LedgerError):
    """
    Event sequence number is not strictly greater than the tail.

    Covers both duplicate delivery and regressed sequence numbers.
    Ingestion treats it as a no-op.
    """

    default_severity = Severity.LOW

    def __init__(self, sequence_number: int, last_sequence_number: int):
        is_duplicate = sequence_number == last_sequence_number
        super().__init__(
            message=(
                f"Sequence {sequence_number} is not after tail {last_sequence_number}"
                + (" (duplicate)" if is_duplicate else "")
            ),
            context={
                "sequence_number": sequence_number,
                "last_sequence_number": last_sequence_number,
            },
        )
        self.sequence_number = sequence_number
        self.last_sequence_number = last_sequence_number
        self.is_duplicate = is_duplicate


class InvalidEventError(LedgerError):
    """Event payload is malformed (delta not in {-1, +1}, negative values)."""

    default_recoverable = False

    def __init__(self, message: str, field_name: Optional[str] = None, value: Any = None):
        context: Dict[str, Any] = {}
        if field_name:
            context["field"] = field_name
        if value is not None:
            context["value"] = str(value)
        super().__init__(message, context=context)


# ============================================================
# STORAGE ERRORS
# ============================================================

class StorageFailureError(ScoreSystemError):
    """
    Underlying store unreachable or errored.

    Surfaced to whichever layer invoked the operation; this core
    never retries internally.
    """

    default_severity = Severity.HIGH
    default_recoverable = False

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if operation:
            context["operation"] = operation
        super().__init__(message, context=context, **kwargs)
        self.operation = operation


# ============================================================
# QUERY ERRORS
# ============================================================

class InvalidQueryError(ScoreSystemError):
    """Query parameters are out of range or unknown."""

    default_severity = Severity.LOW

    def __init__(self, message: str, parameter: Optional[str] = None, value: Any = None):
        context: Dict[str, Any] = {}
        if parameter:
            context["parameter"] = parameter
        if value is not None:
            context["value"] = str(value)[:100]
        super().__init__(message, context=context)
        self.parameter = parameter


# ============================================================
# INVARIANT VIOLATIONS (REPORTED, NEVER RAISED)
# ============================================================

@dataclass(frozen=True)
class InvariantViolation:
    """A consistency problem detected by the quality auditor."""

    check: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"check": self.check, "message": self.message, "details": dict(self.details)}


__all__ = [
    "Severity",
    "ScoreSystemError",
    "ConfigurationError",
    "LedgerError",
    "OutOfOrderEventError",
    "InvalidEventError",
    "StorageFailureError",
    "InvalidQueryError",
    "InvariantViolation",
]
