"""
Error handling utilities for the Valter console.
Maps failures to user-facing messages, renders them with recovery hints and
records them for later analysis.
"""

import streamlit as st
import logging
import json
from typing import Any, Callable, List, Optional
from datetime import datetime
from pathlib import Path

from .exceptions import (
    BackendTimeoutError,
    ContextParseError,
    MissingEnvironmentError,
    ProtocolError,
    TransportError,
    UnsupportedWriteError,
    ValterError,
)

logger = logging.getLogger(__name__)

ERROR_LOG_FILE = Path("logs/error_analytics.jsonl")


class ErrorType:
    """Error type constants."""
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    TIMEOUT = "timeout"
    CONFIGURATION = "configuration"
    SEMANTIC = "semantic"
    SYSTEM = "system"


def classify_error(error: Exception) -> str:
    """Map an exception to its ErrorType."""
    if isinstance(error, BackendTimeoutError):
        return ErrorType.TIMEOUT
    if isinstance(error, TransportError):
        return ErrorType.TRANSPORT
    if isinstance(error, ProtocolError):
        return ErrorType.PROTOCOL
    if isinstance(error, MissingEnvironmentError):
        return ErrorType.CONFIGURATION
    if isinstance(error, (ContextParseError, UnsupportedWriteError, LookupError)):
        return ErrorType.SEMANTIC
    if isinstance(error, ValterError):
        return ErrorType.PROTOCOL
    return ErrorType.SYSTEM


class ErrorHandler:
    """Error handling for the Valter console."""

    @staticmethod
    def handle_error(
        error: Exception,
        context: str,
        error_type: Optional[str] = None,
        user_message: Optional[str] = None,
        show_details: bool = False
    ) -> None:
        """
        Handle errors with user-friendly messages and recovery hints.

        Args:
            error: The exception that occurred
            context: Context where the error occurred
            error_type: Type of error (from ErrorType constants); inferred if omitted
            user_message: Custom user-friendly message
            show_details: Whether to expand technical details
        """
        if error_type is None:
            error_type = classify_error(error)

        logger.error(f"Error in {context}: {str(error)}", exc_info=error)

        ErrorHandler.show_error(error, context, error_type, user_message, show_details)
        ErrorHandler._log_error_analytics(error, context, error_type)

    @staticmethod
    def record_error(error: Exception, context: str, error_type: Optional[str] = None) -> None:
        """
        Record a failure in the analytics log without rendering anything.

        Used for failures caught outside a render pass, such as background
        fetches, which are kept on the state and shown later.
        """
        if error_type is None:
            error_type = classify_error(error)
        ErrorHandler._log_error_analytics(error, context, error_type)

    @staticmethod
    def show_error(
        error: Exception,
        context: str,
        error_type: Optional[str] = None,
        user_message: Optional[str] = None,
        show_details: bool = False
    ) -> None:
        """Render an already recorded error; safe to call on every rerun."""
        if error_type is None:
            error_type = classify_error(error)
        if not user_message:
            user_message = ErrorHandler.get_user_friendly_message(error, error_type)
        ErrorHandler._display_error(user_message, error, context, show_details)

    @staticmethod
    def get_user_friendly_message(error: Exception, error_type: str) -> str:
        """Generate user-facing error messages based on error type."""
        if error_type == ErrorType.PROTOCOL:
            # Backend messages are shown verbatim
            return f"⚠️ {error}"

        error_messages = {
            ErrorType.TRANSPORT: "🌐 The Valter core could not be reached.",
            ErrorType.TIMEOUT: "⏱️ The Valter core did not answer in time.",
            ErrorType.CONFIGURATION: "🔧 Required configuration is missing.",
            ErrorType.SEMANTIC: "📋 The request could not be completed.",
            ErrorType.SYSTEM: "💻 An unexpected error occurred.",
        }
        base = error_messages.get(error_type, error_messages[ErrorType.SYSTEM])
        return f"{base} {error}"

    @staticmethod
    def _display_error(
        user_message: str,
        error: Exception,
        context: str,
        show_details: bool = False
    ) -> None:
        """Display error message to user with recovery hints."""
        st.error(user_message)

        suggestions: List[str] = getattr(error, 'recovery_suggestions', []) or []
        if suggestions:
            st.caption(" · ".join(suggestions))

        with st.expander("🔍 Technical Details", expanded=show_details):
            st.write(f"**Error Type:** {type(error).__name__}")
            st.write(f"**Context:** {context}")
            st.write(f"**Error Message:** {str(error)}")
            if isinstance(error, ValterError) and error.context:
                st.json(error.context)

    @staticmethod
    def _log_error_analytics(error: Exception, context: str, error_type: str) -> None:
        """Append the error to the analytics log."""
        try:
            error_data = {
                'timestamp': datetime.now().isoformat(),
                'error_type': error_type,
                'exception_type': type(error).__name__,
                'context': context,
                'message': str(error),
            }

            ERROR_LOG_FILE.parent.mkdir(exist_ok=True)
            with open(ERROR_LOG_FILE, 'a') as f:
                json.dump(error_data, f, default=str)
                f.write('\n')

        except OSError as e:
            logger.error(f"Failed to log error analytics: {e}")

    @staticmethod
    def with_error_handling(
        func: Callable,
        context: str,
        error_type: Optional[str] = None,
        user_message: Optional[str] = None,
        default_return: Any = None
    ) -> Any:
        """
        Run ``func``, rendering any failure instead of raising it.

        Returns:
            Function result or default_return on error
        """
        try:
            return func()
        except Exception as e:
            ErrorHandler.handle_error(e, context, error_type, user_message)
            return default_return


def handle_error(error: Exception, context: str, error_type: Optional[str] = None) -> None:
    """Convenience function for error handling."""
    ErrorHandler.handle_error(error, context, error_type)


def with_error_handling(func: Callable, context: str, **kwargs) -> Any:
    """Convenience function for wrapping operations with error handling."""
    return ErrorHandler.with_error_handling(func, context, **kwargs)
