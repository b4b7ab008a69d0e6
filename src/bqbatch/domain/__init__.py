"""
Domain package for the bqbatch library.

This package contains the clause model, request and result models,
enums and the exception hierarchy shared by every layer.
"""

from .base_enums import (
    ClauseKind,
    SortDirection,
    ErrorKind,
    OutcomeStatus,
    JobStatus
)
from .clauses import (
    SelectClause,
    WhereClause,
    GroupByClause,
    OrderByClause,
    OrderItem,
    LimitClause,
    Clause,
    QuerySpec
)
from .requests import ExecutionRequest
from .responses import (
    JobHandle,
    QueryResult,
    SuccessOutcome,
    FailureOutcome,
    ExecutionOutcome,
    BatchReport,
    BatchSummary
)
from .errors import (
    QueryBatchException,
    ConfigurationError,
    AggregationError,
    ExecutionError,
    BatchStructuralError,
    ServiceUnavailableError
)

__all__ = [
    # Enums
    "ClauseKind",
    "SortDirection",
    "ErrorKind",
    "OutcomeStatus",
    "JobStatus",

    # Clauses
    "SelectClause",
    "WhereClause",
    "GroupByClause",
    "OrderByClause",
    "OrderItem",
    "LimitClause",
    "Clause",
    "QuerySpec",

    # Requests
    "ExecutionRequest",

    # Results
    "JobHandle",
    "QueryResult",
    "SuccessOutcome",
    "FailureOutcome",
    "ExecutionOutcome",
    "BatchReport",
    "BatchSummary",

    # Errors
    "QueryBatchException",
    "ConfigurationError",
    "AggregationError",
    "ExecutionError",
    "BatchStructuralError",
    "ServiceUnavailableError"
]
