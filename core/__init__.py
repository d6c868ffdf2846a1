"""
Core utilities and configuration for the groundwater ingestion service.

Modules:
    config: Application configuration and environment variable management
    database: Async engine and session factory
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import UpstreamError, RetryExhaustedError
    from core.logging import setup_logging
"""

__all__ = [
    "settings",
    "async_session_maker",
    "setup_logging",
    # Exceptions
    "IngestionException",
    "RetryableError",
    "NonRetryableError",
    "ExtractionError",
    "UpstreamError",
    "RetryExhaustedError",
    "TransformationError",
    "RecordRejectedError",
    "EnrichmentError",
    "CacheTierError",
    "LoadError",
    "BulkWriteError",
    "DatabaseConnectionError",
]
