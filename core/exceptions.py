"""
Custom exceptions for the investment analytics core with structured error context.

This module provides the exception hierarchy used by the query, aggregation,
metadata and retry layers. Each exception includes context information for
debugging and monitoring.

Exception Hierarchy:
    InvestmentDataError (base)
    ├── InvalidQueryError          (bad filter / sort / cursor, never retried)
    ├── FetchError
    │   ├── TransientFetchError    (I/O or connection failure, retried)
    │   └── RetriesExhaustedError  (all attempts failed, carries last cause)
    └── StaleDataServed            (signal, logged when a stale snapshot is served)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class InvestmentDataError(Exception):
    """
    Base exception for all investment data errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (field, value, attempt, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Query Errors
# ============================================================================

class InvalidQueryError(InvestmentDataError):
    """
    Exception raised when a filter, sort or pagination parameter is malformed.

    Surfaced immediately; the retry wrapper never retries it.

    Context should include:
        - field_name: Name of the offending parameter
        - field_value: Value that was rejected
        - allowed: Allowed values (if applicable)
    """
    pass


# ============================================================================
# Fetch Errors
# ============================================================================

class FetchError(InvestmentDataError):
    """Base exception for data store read failures."""
    pass


class TransientFetchError(FetchError):
    """
    I/O or connection failure that should be retried.

    Use this for transient errors like:
    - Connection refused / reset
    - Serverless database cold-start timeouts
    - Dropped connections mid-query

    Context should include:
        - operation: Store operation that failed (query, count, distinct, ...)
    """
    pass


class RetriesExhaustedError(FetchError):
    """
    Raised when every attempt of a retried operation failed.

    The last failure is attached as ``original_exception`` (and ``__cause__``).

    Context should include:
        - attempts: Number of attempts made
        - operation: Name of the retried operation
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None,
        attempts: int = 0
    ):
        super().__init__(message, context, original_exception)
        self.attempts = attempts
        self.context["attempts"] = attempts


# ============================================================================
# Signals
# ============================================================================

class StaleDataServed(InvestmentDataError):
    """
    Signal emitted when the metadata cache serves a stale snapshot.

    Not raised by the core: the cache builds it from the refresh failure,
    logs it and keeps it as ``last_stale_event`` so callers can inspect it.

    Context should include:
        - snapshot_age_seconds: Age of the snapshot being served
    """
    pass
