"""
Custom exception classes for the Valter console.

This module provides specialized exception classes for the failure kinds
the console distinguishes: transport, protocol, timeout, configuration and
semantic errors. Every error carries context and recovery suggestions so
the error handler can render them without knowing the concrete type.
"""

import logging
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


class ValterError(Exception):
    """
    Base exception for console errors.

    Attributes:
        message: Error message
        context: Additional context information
        recovery_suggestions: List of suggested recovery actions
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 recovery_suggestions: Optional[List[str]] = None):
        self.message = message
        self.context = context or {}
        self.recovery_suggestions = recovery_suggestions or []
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def get_full_details(self) -> Dict[str, Any]:
        """Get complete error details including context and suggestions."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'context': self.context,
            'recovery_suggestions': self.recovery_suggestions
        }


class BackendError(ValterError):
    """Base class for failures of a backend request."""

    def __init__(self, operation: str, message: str,
                 context: Optional[Dict[str, Any]] = None,
                 recovery_suggestions: Optional[List[str]] = None):
        self.operation = operation
        context = dict(context or {})
        context.setdefault('operation', operation)
        super().__init__(message, context, recovery_suggestions)


class TransportError(BackendError):
    """
    Raised when the backend cannot be reached or answers with a non-2xx status.
    """

    def __init__(self, operation: str, detail: str, status_code: Optional[int] = None):
        self.status_code = status_code

        if status_code is not None:
            message = f"{operation} failed with HTTP {status_code}: {detail}"
        else:
            message = f"{operation} failed: {detail}"

        recovery_suggestions = [
            "Check that the Valter core is running",
            "Verify the backend URL in config.yaml or VALTER_API_URL",
            "Retry once the backend is reachable"
        ]

        super().__init__(operation, message, {'status_code': status_code}, recovery_suggestions)


class ProtocolError(BackendError):
    """
    Raised when the backend answers with an ``errors`` array or a malformed payload.

    The message is the first backend error message, verbatim.
    """

    def __init__(self, operation: str, message: str, errors: Optional[List[Any]] = None):
        self.errors = errors or []
        super().__init__(
            operation,
            message,
            {'error_count': len(self.errors)},
            ["Check the backend logs for the failing query", "Retry the operation"]
        )


class BackendTimeoutError(BackendError):
    """
    Raised when a request does not complete within the configured timeout.
    """

    def __init__(self, operation: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        message = f"{operation} timed out after {timeout_seconds:g}s"
        super().__init__(
            operation,
            message,
            {'timeout_seconds': timeout_seconds},
            ["Retry the operation", "Increase backend.timeout_seconds in config.yaml"]
        )


class FieldUpdateRejected(BackendError):
    """
    Raised when the backend answers a field update with anything but ``Success``.
    """

    def __init__(self, operation: str, result: Any):
        self.result = result
        super().__init__(
            operation,
            f"{operation} was not applied (backend answered {result!r})",
            {'result': result},
            ["Check that the entity still exists on disk", "Retry the edit"]
        )


class UnsupportedWriteError(ValterError):
    """
    Raised when a write is requested for an entity kind without a write path.
    """

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(
            f"Writing {kind} entities is not supported by the backend",
            {'kind': kind},
            [f"Remove '{kind}' from capabilities.editable_kinds in config.yaml"]
        )


class ContextParseError(ValterError):
    """
    Raised when a pending action's context cannot be turned into a merge target.
    """

    def __init__(self, raw_context: Any, reason: str):
        self.raw_context = raw_context
        self.reason = reason
        super().__init__(
            f"Auto-fix failed: {reason}",
            {'raw_context': str(raw_context)[:200]},
            ["Resolve the action with Create New or Ignore",
             "Fix the source file by hand and rescan"]
        )


class MissingEnvironmentError(ValterError):
    """
    Raised when required environment-sourced configuration values are absent.
    """

    def __init__(self, missing_keys: List[str]):
        self.missing_keys = list(missing_keys)
        super().__init__(
            f"Missing required environment values: {', '.join(self.missing_keys)}",
            {'missing_keys': self.missing_keys},
            ["Set the listed environment variables and press Recheck",
             "Set environment.ignore_missing to use compiled-in defaults"]
        )

