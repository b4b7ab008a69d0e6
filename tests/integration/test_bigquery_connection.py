"""
Integration tests for BigQueryClient.

These tests run real query jobs and need Application Default Credentials
plus a billing project.

Usage:
    # Run all BigQuery tests
    BIGQUERY__PROJECT_ID=my-project pytest tests/integration/test_bigquery_connection.py -v

    # Run with output (see logs)
    pytest tests/integration/test_bigquery_connection.py -v -s

Requirements:
    - BIGQUERY__PROJECT_ID must be set in the environment or .env
    - Credentials able to run query jobs in that project
"""

import asyncio

import pytest

from bqbatch.config import get_settings
from bqbatch.domain.base_enums import ErrorKind, JobStatus
from bqbatch.domain.responses import FailureOutcome, SuccessOutcome
from bqbatch.infrastructure.bigquery_client import BigQueryClient
from bqbatch.services.batch_executor import BatchExecutor
from bqbatch.services.query_builder import QueryBuilder
from bqbatch.services.result_aggregator import ResultAggregator
from bqbatch.domain.requests import ExecutionRequest


pytestmark = pytest.mark.integration

PUBLIC_TABLE = "`bigquery-public-data.samples.shakespeare`"


@pytest.fixture
def bigquery_config():
    """Get BigQuery configuration from settings, skipping when no project is configured."""
    config = get_settings().bigquery
    if not config.project_id:
        pytest.skip("BIGQUERY__PROJECT_ID is not set")
    return config


@pytest.fixture
async def bigquery_client(bigquery_config):
    """Create and connect BigQuery client."""
    client = BigQueryClient(bigquery_config)
    await client.connect()
    yield client
    if client.is_connected():
        await client.close()


class TestBigQueryConnection:

    async def test_connect_and_close(self, bigquery_config):
        client = BigQueryClient(bigquery_config)

        await client.connect()
        assert client.is_connected()

        await client.close()
        assert not client.is_connected()

    async def test_health_check(self, bigquery_client):
        health = await bigquery_client.health_check()
        assert health["status"] == "healthy"

    async def test_submit_poll_fetch(self, bigquery_client):
        handle = await bigquery_client.submit("SELECT 1 AS one, 'a' AS letter")

        while await bigquery_client.poll(handle) != JobStatus.DONE:
            await asyncio.sleep(0.5)
        result = await bigquery_client.fetch_result(handle)

        assert result.rows == [{"one": 1, "letter": "a"}]
        assert result.column_names == ["one", "letter"]


class TestBigQueryBatch:

    async def test_builder_queries_against_public_dataset(self, bigquery_client):
        requests = [
            QueryBuilder(PUBLIC_TABLE)
            .select_fields("corpus", "SUM(word_count) AS words")
            .where_condition(f"corpus = '{corpus}'")
            .group_by("corpus")
            .to_request(corpus)
            for corpus in ("hamlet", "macbeth", "othello")
        ]
        executor = BatchExecutor(bigquery_client, {"max_concurrency": 2, "poll_interval_seconds": 0.5})

        report = await executor.run(requests)

        assert list(report) == ["hamlet", "macbeth", "othello"]
        assert report.success_count == 3
        rows = ResultAggregator().merge(report)
        assert [row["corpus"] for row in rows] == ["hamlet", "macbeth", "othello"]
        assert ResultAggregator().summarize(report).total_bytes_processed >= 0

    async def test_syntax_error_is_isolated(self, bigquery_client):
        requests = [
            ExecutionRequest(request_id="good", sql="SELECT 1 AS x"),
            ExecutionRequest(request_id="bad", sql="SELEC 1"),
        ]

        report = await BatchExecutor(bigquery_client, {"poll_interval_seconds": 0.5}).run(requests)

        assert isinstance(report["good"], SuccessOutcome)
        assert isinstance(report["bad"], FailureOutcome)
        assert report["bad"].error_kind == ErrorKind.SYNTAX
