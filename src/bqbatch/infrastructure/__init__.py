"""
Infrastructure layer for remote execution services.

This module contains the QueryService contract and its clients for
BigQuery and PostgreSQL.
"""

from .query_service import QueryService
from .bigquery_client import BigQueryClient
from .postgres_client import PostgresQueryService

__all__ = ["QueryService", "BigQueryClient", "PostgresQueryService"]
