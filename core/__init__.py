"""
Core utilities and configuration for the investment analytics backend.

This package provides foundational components used throughout the query layer:

Modules:
    config: Application configuration and environment variable management
    database: Database connection and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities
    retry: Bounded exponential-backoff retry for async operations

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import InvalidQueryError, TransientFetchError
    from core.logging import setup_logging
    from core.retry import with_retries

Example:
    # Initialize logging
    setup_logging()

    # Retry a flaky coroutine three times
    rows = await with_retries(lambda: store.query(filters, sort, window), max_attempts=3)
"""

__all__ = [
    "settings",
    "get_session",
    "setup_logging",
    "with_retries",
    # Exceptions
    "InvestmentDataError",
    "InvalidQueryError",
    "FetchError",
    "TransientFetchError",
    "RetriesExhaustedError",
    "StaleDataServed",
]
