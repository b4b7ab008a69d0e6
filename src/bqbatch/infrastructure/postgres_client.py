"""
PostgreSQL remote execution service using asyncpg.

PostgreSQL has no job API, so a submitted query runs as a background
asyncio task holding one pooled connection; polling inspects the task and
cancelling it cancels the statement on the server.
"""

import asyncio
import uuid
from typing import Any, Dict, Optional, Tuple

import asyncpg

from ..config import PostgresConfig
from ..config_constants import LOG_SQL_PREVIEW_CHARS
from ..domain.base_enums import ErrorKind, JobStatus
from ..domain.errors import ExecutionError, ServiceUnavailableError
from ..domain.responses import JobHandle, QueryResult
from ..utils.logging import get_module_logger
from .query_service import QueryService


logger = get_module_logger()


# Checked in order; the first matching exception type wins
_EXCEPTION_KINDS: Tuple[Tuple[type, ErrorKind], ...] = (
    (asyncpg.QueryCanceledError, ErrorKind.TIMEOUT),
    (asyncpg.PostgresSyntaxError, ErrorKind.SYNTAX),
    (asyncpg.UndefinedTableError, ErrorKind.SYNTAX),
    (asyncpg.UndefinedColumnError, ErrorKind.SYNTAX),
    (asyncpg.InvalidSchemaNameError, ErrorKind.SYNTAX),
    (asyncpg.InsufficientPrivilegeError, ErrorKind.PERMISSION),
    (asyncpg.ReadOnlySQLTransactionError, ErrorKind.PERMISSION),
    (asyncpg.TooManyConnectionsError, ErrorKind.QUOTA),
    (asyncpg.DeadlockDetectedError, ErrorKind.TRANSIENT),
    (asyncpg.SerializationError, ErrorKind.TRANSIENT),
    (asyncpg.PostgresConnectionError, ErrorKind.TRANSIENT),
    (asyncpg.InterfaceError, ErrorKind.TRANSIENT),
    (OSError, ErrorKind.TRANSIENT),
)


def classify_exception(exc: BaseException) -> ErrorKind:
    """Classify an exception raised by asyncpg."""
    for exc_type, kind in _EXCEPTION_KINDS:
        if isinstance(exc, exc_type):
            return kind
    return ErrorKind.UNKNOWN


class PostgresQueryService(QueryService):
    """
    Async PostgreSQL query service using an asyncpg connection pool.

    Features:
    - Connection pooling with asyncpg
    - Read-only transactions (configurable)
    - Cancellation of running statements
    - Structured logging with batch IDs

    Usage:
        service = PostgresQueryService(config)
        await service.connect()
        executor = BatchExecutor(service)
        report = await executor.run(requests)
        await service.close()
    """

    def __init__(self, config: PostgresConfig):
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._jobs: Dict[str, asyncio.Task] = {}

        logger.info(
            "PostgresQueryService initialized",
            default_schema=config.default_schema,
            connection_pool_size=config.connection_pool_max_size,
            application_name=config.application_name
        )

    async def connect(self) -> None:
        """
        Establish connection pool to the database.

        Raises:
            ServiceUnavailableError: If connection fails
        """
        if self._pool is not None:
            logger.warning("PostgreSQL service already connected")
            return

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.config.database_url,
                min_size=self.config.connection_pool_min_size,
                max_size=self.config.connection_pool_max_size,
                timeout=self.config.connection_timeout_seconds,
                server_settings={
                    'application_name': self.config.application_name,
                    'search_path': self.config.default_schema,
                }
            )
        except asyncpg.InvalidCatalogNameError as e:
            error_msg = f"Database does not exist: {e}"
            logger.error(error_msg)
            raise ServiceUnavailableError(error_msg) from e

        except asyncpg.InvalidPasswordError as e:
            error_msg = f"Authentication failed: {e}"
            logger.error(error_msg)
            raise ServiceUnavailableError(error_msg) from e

        except Exception as e:
            error_msg = f"Failed to connect to database: {e}"
            logger.error(error_msg, error_type=type(e).__name__)
            raise ServiceUnavailableError(error_msg) from e

        logger.info(
            "Database connection established successfully",
            pool_size=self.config.connection_pool_max_size,
            default_schema=self.config.default_schema,
        )

    async def close(self) -> None:
        """Cancel outstanding queries and close the pool."""
        for task in self._jobs.values():
            task.cancel()
        if self._jobs:
            await asyncio.gather(*self._jobs.values(), return_exceptions=True)
        self._jobs.clear()

        if self._pool is not None:
            await self._pool.close()
            logger.info("Connection pool closed")

        self._pool = None

    def is_connected(self) -> bool:
        return self._pool is not None

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on database connection.

        Returns:
            Dictionary with status and connection details
        """
        if self._pool is None:
            return {
                "status": "unhealthy",
                "connected": False,
                "error": "Database client not connected"
            }

        try:
            async with self._pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                current_schema = await conn.fetchval("SELECT current_schema()")
        except Exception as e:
            logger.error(
                "Database health check failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return {
                "status": "unhealthy",
                "connected": True,
                "error": str(e)
            }

        if result != 1:
            return {
                "status": "unhealthy",
                "connected": True,
                "error": "Connection test query failed"
            }

        return {
            "status": "healthy",
            "connected": True,
            "pool_size": self.config.connection_pool_max_size,
            "current_schema": current_schema
        }

    async def _run_query(self, sql: str) -> QueryResult:
        if self._pool is None:
            raise ServiceUnavailableError("Connection pool is not available")

        async with self._pool.acquire() as conn:
            async with conn.transaction(readonly=self.config.enforce_read_only):
                statement = await conn.prepare(sql)
                column_names = [attribute.name for attribute in statement.get_attributes()]
                records = await statement.fetch()

        # PostgreSQL does not report scanned bytes
        return QueryResult(
            rows=[dict(record) for record in records],
            column_names=column_names,
            bytes_processed=0,
        )

    async def submit(self, sql: str) -> JobHandle:
        if self._pool is None:
            raise ServiceUnavailableError("Database client is not connected")

        job_id = uuid.uuid4().hex
        self._jobs[job_id] = asyncio.create_task(self._run_query(sql), name=f"pg-job-{job_id}")

        logger.debug("PostgreSQL query submitted", job_id=job_id, query=sql[:LOG_SQL_PREVIEW_CHARS])
        return JobHandle(job_id=job_id)

    def _require_job(self, handle: JobHandle) -> asyncio.Task:
        task = self._jobs.get(handle.job_id)
        if task is None:
            raise ExecutionError(f"Unknown PostgreSQL job: {handle.job_id}", kind=ErrorKind.UNKNOWN)
        return task

    async def poll(self, handle: JobHandle) -> JobStatus:
        task = self._require_job(handle)
        return JobStatus.DONE if task.done() else JobStatus.RUNNING

    async def fetch_result(self, handle: JobHandle) -> QueryResult:
        task = self._require_job(handle)

        try:
            # Shielded: cancelling the caller must not cancel the query, cancel() does that
            result = await asyncio.shield(task)
        except ExecutionError:
            raise
        except asyncio.CancelledError:
            if task.cancelled():
                raise ExecutionError(f"Query {handle.job_id} was cancelled", kind=ErrorKind.TIMEOUT)
            raise
        except Exception as e:
            kind = classify_exception(e)
            logger.error("PostgreSQL query failed", job_id=handle.job_id, error=str(e), kind=kind.value)
            raise ExecutionError(f"Query execution failed: {e}", kind=kind) from e
        finally:
            if task.done():
                self._jobs.pop(handle.job_id, None)

        logger.info("PostgreSQL query finished", job_id=handle.job_id, row_count=len(result.rows))
        return result

    async def cancel(self, handle: JobHandle) -> None:
        task = self._jobs.pop(handle.job_id, None)
        if task is None or task.done():
            return

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.info("PostgreSQL query cancelled", job_id=handle.job_id)
