"""
Error codes for PSS-Live.

Structured error codes for machine-parseable diagnostics.

Format: E{category}{number}
- E1xxx: Transport errors
- E2xxx: Decode errors
- E3xxx: Configuration errors
- E4xxx: Pipeline errors

Only E1001 (bind failure) is fatal. Everything else degrades to a
diagnostic and the ingestion loop keeps going.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple


class ErrorCode(Enum):
    """Structured error codes."""

    # E1xxx: Transport errors
    E1001_BIND_FAILED = "E1001"
    E1002_RECEIVE_FAILED = "E1002"
    E1003_NON_ASCII_PAYLOAD = "E1003"

    # E2xxx: Decode errors
    E2001_UNKNOWN_TAG = "E2001"
    E2002_ARITY_MISMATCH = "E2002"
    E2003_INVALID_FIELD = "E2003"

    # E3xxx: Configuration errors
    E3001_INVALID_CONFIG = "E3001"
    E3002_VALIDATION_FAILED = "E3002"

    # E4xxx: Pipeline errors
    E4001_REDUCTION_FAILED = "E4001"
    E4002_SUBSCRIBER_OVERFLOW = "E4002"


# Error code metadata
ERROR_METADATA = {
    ErrorCode.E1001_BIND_FAILED: {
        'severity': 'critical',
        'message': 'Failed to bind UDP socket',
        'recoverable': False,
    },
    ErrorCode.E1002_RECEIVE_FAILED: {
        'severity': 'error',
        'message': 'Error receiving UDP datagram',
        'recoverable': True,
    },
    ErrorCode.E1003_NON_ASCII_PAYLOAD: {
        'severity': 'warning',
        'message': 'Datagram is not valid ASCII',
        'recoverable': True,
    },
    ErrorCode.E2001_UNKNOWN_TAG: {
        'severity': 'warning',
        'message': 'Unknown stream tag',
        'recoverable': True,
    },
    ErrorCode.E2002_ARITY_MISMATCH: {
        'severity': 'warning',
        'message': 'Wrong number of fields for stream tag',
        'recoverable': True,
    },
    ErrorCode.E2003_INVALID_FIELD: {
        'severity': 'warning',
        'message': 'Field value is not valid for stream tag',
        'recoverable': True,
    },
    ErrorCode.E3001_INVALID_CONFIG: {
        'severity': 'error',
        'message': 'Invalid configuration',
        'recoverable': False,
    },
    ErrorCode.E3002_VALIDATION_FAILED: {
        'severity': 'error',
        'message': 'Configuration validation failed',
        'recoverable': False,
    },
    ErrorCode.E4001_REDUCTION_FAILED: {
        'severity': 'error',
        'message': 'Failed to apply event to match state',
        'recoverable': True,
    },
    ErrorCode.E4002_SUBSCRIBER_OVERFLOW: {
        'severity': 'warning',
        'message': 'Subscriber queue full, oldest notification dropped',
        'recoverable': True,
    },
}


class PSSError(Exception):
    """Base exception carrying a structured error code."""

    code: ErrorCode = ErrorCode.E3001_INVALID_CONFIG

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class BindError(PSSError):
    """Listener could not bind its socket. Fatal at startup."""
    code = ErrorCode.E1001_BIND_FAILED


class ReceiveError(PSSError):
    """Receive failed on an open socket."""
    code = ErrorCode.E1002_RECEIVE_FAILED


class NonAsciiPayload(PSSError):
    """Datagram payload could not be decoded as ASCII."""
    code = ErrorCode.E1003_NON_ASCII_PAYLOAD


class InvalidFieldError(PSSError, ValueError):
    """Raised by field validators inside the stream decoder."""
    code = ErrorCode.E2003_INVALID_FIELD


class ArityError(PSSError, ValueError):
    """Raised when a statement carries the wrong number of fields."""
    code = ErrorCode.E2002_ARITY_MISMATCH


@dataclass(frozen=True)
class DecodeError:
    """
    Diagnostic for a statement or datagram that was discarded.

    Published to subscribers alongside normal events so UI layers can
    surface parsing problems. Never raised.

    Example:
        error = DecodeError(
            code=ErrorCode.E2001_UNKNOWN_TAG,
            tag='zz1',
            fields=('5',),
            reason="Unknown stream tag 'zz1'",
        )
    """
    code: ErrorCode
    tag: str = ''
    fields: Tuple[str, ...] = field(default_factory=tuple)
    reason: str = ''
    timestamp: float = 0.0

    @property
    def severity(self) -> str:
        return ERROR_METADATA.get(self.code, {}).get('severity', 'error')

    @property
    def message(self) -> str:
        base_msg = ERROR_METADATA.get(self.code, {}).get('message', 'Unknown error')
        if self.reason:
            return f"{base_msg}: {self.reason}"
        return base_msg

    @property
    def recoverable(self) -> bool:
        return ERROR_METADATA.get(self.code, {}).get('recoverable', False)

    def to_dict(self) -> dict:
        return {
            'type': 'error',
            'code': self.code.value,
            'severity': self.severity,
            'message': self.message,
            'recoverable': self.recoverable,
            'tag': self.tag,
            'fields': list(self.fields),
            'timestamp': self.timestamp,
        }
