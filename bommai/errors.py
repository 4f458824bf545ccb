"""Error taxonomy for the listening pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    CAPABILITY_UNAVAILABLE = "capability_unavailable"
    PERMISSION_DENIED = "permission_denied"
    SESSION_ERROR = "session_error"
    RESTART_FAILURE = "restart_failure"


class BommaiError(Exception):
    kind: Optional[ErrorKind] = None


class ConfigError(BommaiError, ValueError):
    """Invalid trigger table or configuration value."""


class CapabilityUnavailable(BommaiError):
    kind = ErrorKind.CAPABILITY_UNAVAILABLE


class PermissionDenied(BommaiError):
    kind = ErrorKind.PERMISSION_DENIED

    def __init__(self, reason: str = "denied"):
        super().__init__(reason)
        self.reason = reason


class SessionBusy(BommaiError, RuntimeError):
    """start() called while a recognition run is still active."""


class InputExhausted(BommaiError, EOFError):
    """start() on a text session whose stream has already ended."""
