"""
bqbatch: query construction and concurrent batch execution for BigQuery.

Usage:
    from bqbatch import BatchExecutor, BigQueryClient, QueryBuilder, ResultAggregator
    from bqbatch.config import get_settings
    from bqbatch.utils.logging import configure_logging

    configure_logging()

    settings = get_settings()
    client = BigQueryClient(settings.bigquery)
    await client.connect()

    requests = [
        QueryBuilder("orders").select_fields("COUNT(*) AS n").to_request("order_count"),
    ]
    report = await BatchExecutor(client, settings.executor).run(requests)
    summary = ResultAggregator().summarize(report)
"""

from bqbatch.domain import (
    AggregationError,
    BatchReport,
    BatchStructuralError,
    BatchSummary,
    ConfigurationError,
    ErrorKind,
    ExecutionError,
    ExecutionRequest,
    FailureOutcome,
    QuerySpec,
    SortDirection,
    SuccessOutcome,
)
from bqbatch.infrastructure import BigQueryClient, PostgresQueryService, QueryService
from bqbatch.services.batch_executor import BatchExecutor
from bqbatch.services.query_builder import QueryBuilder
from bqbatch.services.result_aggregator import ResultAggregator

__version__ = "0.1.0"

__all__ = [
    "QueryBuilder",
    "BatchExecutor",
    "ResultAggregator",
    "QueryService",
    "BigQueryClient",
    "PostgresQueryService",
    "QuerySpec",
    "SortDirection",
    "ExecutionRequest",
    "SuccessOutcome",
    "FailureOutcome",
    "BatchReport",
    "BatchSummary",
    "ErrorKind",
    "ConfigurationError",
    "ExecutionError",
    "AggregationError",
    "BatchStructuralError",
]
