"""
BigQuery remote execution service using google-cloud-bigquery.

The google-cloud-bigquery client is synchronous, so every call that touches
the network runs in a worker thread via asyncio.to_thread. Provider errors
are classified into ErrorKind values so the batch executor can decide what
to retry.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from google.api_core import exceptions as google_exceptions
from google.cloud import bigquery

from ..config import BigQueryConfig
from ..config_constants import (
    BIGQUERY_JOB_STATE_DONE,
    BIGQUERY_JOB_STATE_RUNNING,
    LOG_SQL_PREVIEW_CHARS,
)
from ..domain.base_enums import ErrorKind, JobStatus
from ..domain.errors import ExecutionError, ServiceUnavailableError
from ..domain.responses import JobHandle, QueryResult
from ..utils.logging import get_module_logger
from .query_service import QueryService


logger = get_module_logger()


# BigQuery error reasons (errorResult.reason / errors[].reason) by kind
# https://cloud.google.com/bigquery/docs/error-messages
_REASON_KINDS: Dict[str, ErrorKind] = {
    "invalidQuery": ErrorKind.SYNTAX,
    "invalid": ErrorKind.SYNTAX,
    "notFound": ErrorKind.SYNTAX,
    "duplicate": ErrorKind.SYNTAX,
    "accessDenied": ErrorKind.PERMISSION,
    "quotaExceeded": ErrorKind.QUOTA,
    "rateLimitExceeded": ErrorKind.QUOTA,
    "responseTooLarge": ErrorKind.QUOTA,
    "billingTierLimitExceeded": ErrorKind.QUOTA,
    "backendError": ErrorKind.TRANSIENT,
    "internalError": ErrorKind.TRANSIENT,
    "timeout": ErrorKind.TIMEOUT,
}

# Checked in order; the first matching exception type wins
_EXCEPTION_KINDS: Tuple[Tuple[type, ErrorKind], ...] = (
    (google_exceptions.DeadlineExceeded, ErrorKind.TIMEOUT),
    (google_exceptions.GatewayTimeout, ErrorKind.TIMEOUT),
    (google_exceptions.TooManyRequests, ErrorKind.QUOTA),
    (google_exceptions.Forbidden, ErrorKind.PERMISSION),
    (google_exceptions.Unauthorized, ErrorKind.PERMISSION),
    (google_exceptions.InternalServerError, ErrorKind.TRANSIENT),
    (google_exceptions.BadGateway, ErrorKind.TRANSIENT),
    (google_exceptions.ServiceUnavailable, ErrorKind.TRANSIENT),
    (google_exceptions.BadRequest, ErrorKind.SYNTAX),
    (google_exceptions.NotFound, ErrorKind.SYNTAX),
    (google_exceptions.Conflict, ErrorKind.SYNTAX),
    (OSError, ErrorKind.TRANSIENT),
)


def classify_reason(reason: Optional[str]) -> ErrorKind:
    """Map a BigQuery error reason string to an ErrorKind."""
    if not reason:
        return ErrorKind.UNKNOWN
    return _REASON_KINDS.get(reason, ErrorKind.UNKNOWN)


def classify_exception(exc: BaseException) -> ErrorKind:
    """
    Classify an exception raised by google-cloud-bigquery.

    Structured error reasons are more precise than HTTP status codes
    (a quota failure arrives as 403 Forbidden), so they are checked first.
    """
    if isinstance(exc, google_exceptions.GoogleAPICallError):
        for error in exc.errors or []:
            if isinstance(error, dict):
                kind = classify_reason(error.get("reason"))
                if kind != ErrorKind.UNKNOWN:
                    return kind

    for exc_type, kind in _EXCEPTION_KINDS:
        if isinstance(exc, exc_type):
            return kind

    return ErrorKind.UNKNOWN


def _collect_rows(job: bigquery.QueryJob) -> Tuple[List[Dict[str, Any]], List[str]]:
    """Wait for a job and read all result pages. Runs in a worker thread."""
    row_iterator = job.result()
    rows = [dict(row.items()) for row in row_iterator]
    column_names = [schema_field.name for schema_field in (row_iterator.schema or [])]
    return rows, column_names


class BigQueryClient(QueryService):
    """
    Async BigQuery query service.

    Features:
    - Query jobs with configurable default dataset, byte cap and labels
    - Job status polling and best-effort cancellation
    - Error classification for retry decisions
    - Structured logging with batch IDs

    Usage:
        client = BigQueryClient(config)
        await client.connect()

        handle = await client.submit("SELECT 1 AS x")
        while await client.poll(handle) != JobStatus.DONE:
            await asyncio.sleep(1)
        result = await client.fetch_result(handle)

        await client.close()
    """

    def __init__(self, config: BigQueryConfig, credentials: Optional[Any] = None):
        """
        Initialize BigQuery client with configuration.

        Args:
            config: BigQuery configuration
            credentials: Optional google-auth credentials, passed through unchanged.
                When omitted, Application Default Credentials are used.
        """
        self.config = config
        self._credentials = credentials
        self._client: Optional[bigquery.Client] = None
        self._jobs: Dict[str, bigquery.QueryJob] = {}

        logger.info(
            "BigQueryClient initialized",
            project_id=config.project_id,
            location=config.location,
            default_dataset=config.default_dataset,
        )

    async def connect(self) -> None:
        """
        Create the underlying bigquery.Client.

        Raises:
            ServiceUnavailableError: If the client cannot be created (e.g., no credentials)
        """
        if self._client is not None:
            logger.warning("BigQuery client already connected")
            return

        try:
            self._client = bigquery.Client(
                project=self.config.project_id,
                credentials=self._credentials,
                location=self.config.location,
            )
        except Exception as e:
            error_msg = f"Failed to create BigQuery client: {e}"
            logger.error(error_msg, error_type=type(e).__name__)
            raise ServiceUnavailableError(error_msg) from e

        logger.info("BigQuery client connected", project_id=self._client.project)

    async def close(self) -> None:
        """Close the client and forget tracked jobs."""
        if self._client is not None:
            await asyncio.to_thread(self._client.close)
            logger.info("BigQuery client closed")

        self._client = None
        self._jobs.clear()

    def is_connected(self) -> bool:
        return self._client is not None

    def _require_client(self) -> bigquery.Client:
        if self._client is None:
            raise ServiceUnavailableError("BigQuery client is not connected")
        return self._client

    def _require_job(self, handle: JobHandle) -> bigquery.QueryJob:
        job = self._jobs.get(handle.job_id)
        if job is None:
            raise ExecutionError(
                f"Unknown BigQuery job: {handle.job_id}",
                kind=ErrorKind.UNKNOWN,
                details={"job_id": handle.job_id},
            )
        return job

    def _qualified_dataset(self, client: bigquery.Client) -> Optional[str]:
        dataset = self.config.default_dataset
        if dataset and "." not in dataset:
            return f"{client.project}.{dataset}"
        return dataset

    def _job_config(self, client: bigquery.Client) -> bigquery.QueryJobConfig:
        job_config = bigquery.QueryJobConfig(
            use_query_cache=self.config.use_query_cache,
            labels=dict(self.config.labels),
        )
        default_dataset = self._qualified_dataset(client)
        if default_dataset:
            job_config.default_dataset = default_dataset
        if self.config.maximum_bytes_billed:
            job_config.maximum_bytes_billed = self.config.maximum_bytes_billed
        return job_config

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform health check by listing at most one dataset.

        Returns:
            Dictionary with status and connection details
        """
        if self._client is None:
            return {
                "status": "unhealthy",
                "connected": False,
                "error": "BigQuery client not connected"
            }

        client = self._client
        try:
            await asyncio.to_thread(lambda: list(client.list_datasets(max_results=1)))
        except Exception as e:
            logger.error(
                "BigQuery health check failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return {
                "status": "unhealthy",
                "connected": True,
                "error": str(e)
            }

        logger.info("BigQuery health check passed")
        return {
            "status": "healthy",
            "connected": True,
            "project_id": client.project,
        }

    async def submit(self, sql: str) -> JobHandle:
        client = self._require_client()

        logger.debug("Submitting BigQuery job", query=sql[:LOG_SQL_PREVIEW_CHARS])

        try:
            job = await asyncio.to_thread(
                client.query,
                sql,
                job_config=self._job_config(client),
                job_id_prefix=self.config.job_id_prefix,
                location=self.config.location,
            )
        except Exception as e:
            kind = classify_exception(e)
            logger.error("BigQuery job submission failed", error=str(e), kind=kind.value)
            raise ExecutionError(f"Job submission failed: {e}", kind=kind) from e

        self._jobs[job.job_id] = job
        logger.info("BigQuery job submitted", job_id=job.job_id, location=job.location)
        return JobHandle(job_id=job.job_id, location=job.location)

    async def poll(self, handle: JobHandle) -> JobStatus:
        job = self._require_job(handle)

        try:
            await asyncio.to_thread(job.reload)
        except Exception as e:
            kind = classify_exception(e)
            raise ExecutionError(f"Failed to poll job {handle.job_id}: {e}", kind=kind) from e

        if job.state == BIGQUERY_JOB_STATE_DONE:
            return JobStatus.DONE
        if job.state == BIGQUERY_JOB_STATE_RUNNING:
            return JobStatus.RUNNING
        return JobStatus.PENDING

    async def fetch_result(self, handle: JobHandle) -> QueryResult:
        """
        Read all rows of a finished job.

        Raises:
            ExecutionError: If the job finished with an error
        """
        job = self._require_job(handle)

        try:
            error_result = job.error_result
            if error_result:
                reason = error_result.get("reason")
                raise ExecutionError(
                    error_result.get("message", "BigQuery job failed"),
                    kind=classify_reason(reason),
                    details={"job_id": handle.job_id, "reason": reason},
                )

            try:
                rows, column_names = await asyncio.to_thread(_collect_rows, job)
            except Exception as e:
                kind = classify_exception(e)
                raise ExecutionError(
                    f"Failed to read results of job {handle.job_id}: {e}",
                    kind=kind,
                    details={"job_id": handle.job_id},
                ) from e

            bytes_processed = job.total_bytes_processed or 0
            logger.info(
                "BigQuery job finished",
                job_id=handle.job_id,
                row_count=len(rows),
                bytes_processed=bytes_processed,
                cache_hit=job.cache_hit,
            )
            return QueryResult(rows=rows, column_names=column_names, bytes_processed=bytes_processed)
        finally:
            self._jobs.pop(handle.job_id, None)

    async def cancel(self, handle: JobHandle) -> None:
        job = self._jobs.pop(handle.job_id, None)
        if job is None:
            return

        try:
            await asyncio.to_thread(job.cancel)
            logger.info("BigQuery job cancellation requested", job_id=handle.job_id)
        except Exception as e:
            logger.warning(
                "BigQuery job cancellation failed",
                job_id=handle.job_id,
                error=str(e),
                error_type=type(e).__name__,
            )
