"""
Custom exception hierarchy for the bqbatch library.

This module defines the exception hierarchy with:
- Consistent, machine-readable error codes
- Structured details for debugging
- A classification (ErrorKind) for remote execution failures

Exception Categories:
- Caller mistakes: ConfigurationError, AggregationError
- Per-query failures: ExecutionError (recorded in a BatchReport, never raised out of a batch)
- Batch-level failures: BatchStructuralError, ServiceUnavailableError

Usage:
    raise ConfigurationError("LIMIT must be a positive integer", details={"value": 0})
    raise ExecutionError("Table not found: orders", kind=ErrorKind.SYNTAX)
"""

from typing import Any, Dict, Optional

from .base_enums import ErrorKind


class QueryBatchException(Exception):
    """
    Base exception for all bqbatch errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code (e.g., "CONFIGURATION_ERROR")
        details: Optional dictionary with additional error context
    """

    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for logs and reports."""
        result: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Caller Errors
# =============================================================================


class ConfigurationError(QueryBatchException):
    """
    Raised when builder input or a batch definition is invalid.

    Surfaced synchronously, at the call that introduced the bad value.

    Examples:
        - ORDER BY direction other than ASC/DESC
        - Empty WHERE predicate
        - Non-positive LIMIT
    """

    error_code = "CONFIGURATION_ERROR"


class AggregationError(QueryBatchException):
    """
    Raised when successful results cannot be merged into one table.

    Does not invalidate the BatchReport the outcomes came from.

    Examples:
        - Two queries in the batch return different column sets
    """

    error_code = "AGGREGATION_ERROR"


# =============================================================================
# Execution Errors
# =============================================================================


class ExecutionError(QueryBatchException):
    """
    Raised when the remote service rejects or fails a single query.

    Always captured into exactly one FailureOutcome by the batch executor.

    Attributes:
        kind: Classification used by the retry policy and reported to callers
    """

    error_code = "EXECUTION_ERROR"

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message, details=details, error_code=error_code)
        self.kind = kind

    @property
    def is_transient(self) -> bool:
        """True when the same query is expected to succeed on retry."""
        return self.kind == ErrorKind.TRANSIENT

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["kind"] = self.kind.value
        return result


# =============================================================================
# Batch Errors
# =============================================================================


class BatchStructuralError(QueryBatchException):
    """
    Raised when a batch cannot be run at all.

    Raised before any query is dispatched, so no BatchReport exists.

    Examples:
        - Invalid executor configuration
        - Duplicate request identifiers
        - Remote service unreachable during the preflight health check
    """

    error_code = "BATCH_STRUCTURAL_ERROR"


class ServiceUnavailableError(BatchStructuralError):
    """
    Raised when a remote service client is used before it is connected.

    Examples:
        - BigQuery client not connected
        - PostgreSQL pool closed
    """

    error_code = "SERVICE_UNAVAILABLE"
