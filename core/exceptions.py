"""
Custom exceptions for the groundwater ingestion pipeline with structured error context.

Every exception carries a human-readable message, a context dictionary and
the original exception (if any), so failures can be logged with enough
detail to debug a run without re-executing it.

Exception Hierarchy:
    IngestionException (base)
    ├── ExtractionError
    │   ├── UpstreamError            (retryable: timeout, 5xx, error envelope)
    │   └── RetryExhaustedError      (all attempts for one page failed)
    ├── TransformationError
    │   └── RecordRejectedError      (mandatory field missing / invalid)
    ├── EnrichmentError              (postal lookup failed)
    ├── CacheTierError               (distributed cache unavailable)
    ├── LoadError
    │   ├── BulkWriteError           (whole page write failed)
    │   └── DatabaseConnectionError  (store unreachable)
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class IngestionException(Exception):
    """
    Base exception for all ingestion-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (region, clause, offset, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

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
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(IngestionException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts and connection resets
    - Upstream 5xx responses
    - ArcGIS error envelopes returned with HTTP 200
    """
    pass


class NonRetryableError(IngestionException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like invalid records or an unreachable store.
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(IngestionException):
    """Base exception for upstream data extraction failures."""
    pass


class UpstreamError(RetryableError, ExtractionError):
    """
    Exception raised when a single page request to the station service fails.

    Context should include:
        - api_url: The endpoint that failed
        - clause: The filter clause sent
        - offset: Pagination offset
        - status_code: HTTP status code (if applicable)
    """
    pass


class RetryExhaustedError(NonRetryableError, ExtractionError):
    """
    Exception raised when every attempt for one operation failed.

    Context should include:
        - attempts: Number of attempts made
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message, context, original_exception)
        self.attempts = attempts
        self.context["attempts"] = attempts


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(IngestionException):
    """Base exception for record transformation failures."""
    pass


class RecordRejectedError(NonRetryableError, TransformationError):
    """
    Exception raised when a raw feature cannot become a valid record.

    Context should include:
        - reason: Which mandatory field was missing or invalid
        - station_id: Upstream station identifier (if any)
    """
    pass


# ============================================================================
# Enrichment / Cache Errors
# ============================================================================

class EnrichmentError(IngestionException):
    """
    Exception raised when the postal lookup service fails.

    Never escapes the resolver; converted to "no postal code".
    """
    pass


class CacheTierError(IngestionException):
    """
    Exception raised when the distributed cache tier fails.

    Never escapes the cache; converted to a cache miss.
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(IngestionException):
    """Base exception for store write failures."""
    pass


class BulkWriteError(LoadError):
    """
    Exception raised when a whole page batch could not be written.

    Context should include:
        - batch_size: Number of records in the batch
        - table_name: Target table
    """
    pass


class DatabaseConnectionError(NonRetryableError, LoadError):
    """Store unreachable at the start of an ingestion run."""
    pass
