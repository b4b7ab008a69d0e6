"""
Query Execution Repository.

This repository runs ONE attempt of ONE query against a remote execution
service: submit the job, poll until it is done, fetch its result.

Architecture Notes:
- This is a REPOSITORY (data access layer)
- Retries, timeouts and concurrency belong to the BatchExecutor service
- Uses an injected QueryService for all remote calls

Execution Flow:
1. Submit the rendered SQL, receive a JobHandle
2. Poll the job every poll_interval_seconds until DONE
3. Fetch rows, column names and bytes processed

Cancellation:
- If the awaiting task is cancelled (timeout or batch cancellation), or
  polling or fetching fails after submission, the remote job is cancelled
  best-effort and the error propagates.

Error Handling:
- ExecutionError from the service passes through with its ErrorKind
- Any other exception is wrapped as ExecutionError(UNKNOWN)
"""

import asyncio
from typing import Optional

from bqbatch.config_constants import LOG_SQL_PREVIEW_CHARS
from bqbatch.domain.base_enums import ErrorKind, JobStatus
from bqbatch.domain.errors import ExecutionError
from bqbatch.domain.requests import ExecutionRequest
from bqbatch.domain.responses import JobHandle, QueryResult
from bqbatch.infrastructure.query_service import QueryService
from bqbatch.utils.logging import get_module_logger

logger = get_module_logger()


class QueryExecutionRepository:
    """
    Repository for single-query execution.

    Drives the submit / poll / fetch cycle of one remote job.
    """

    def __init__(self, service: QueryService, poll_interval_seconds: float):
        self.service = service
        self.poll_interval_seconds = poll_interval_seconds

    async def execute(self, request: ExecutionRequest) -> QueryResult:
        """
        Execute one attempt of a request.

        Args:
            request: Request carrying the rendered SQL

        Returns:
            QueryResult with rows and bytes processed

        Raises:
            ExecutionError: If the remote service rejects or fails the query
        """
        logger.debug(
            "Executing query",
            request_id=request.request_id,
            query=request.sql[:LOG_SQL_PREVIEW_CHARS],
        )

        handle: Optional[JobHandle] = None
        try:
            handle = await self.service.submit(request.sql)

            while await self.service.poll(handle) != JobStatus.DONE:
                await asyncio.sleep(self.poll_interval_seconds)

            return await self.service.fetch_result(handle)

        except asyncio.CancelledError:
            if handle is not None:
                await self._cancel_quietly(request, handle)
            raise

        except ExecutionError:
            # A retry submits a new job; the old one must not keep running
            if handle is not None:
                await self._cancel_quietly(request, handle)
            raise

        except Exception as e:
            if handle is not None:
                await self._cancel_quietly(request, handle)
            error_msg = f"Query execution failed: {e}"
            logger.error(
                error_msg,
                request_id=request.request_id,
                error_type=type(e).__name__,
            )
            raise ExecutionError(error_msg, kind=ErrorKind.UNKNOWN) from e

    async def _cancel_quietly(self, request: ExecutionRequest, handle: JobHandle) -> None:
        """
        Cancel a remote job; provider failures are logged, never raised.

        Cancelling a job that already reached a terminal state is a no-op
        for every QueryService.
        """
        try:
            # Shielded so the cancel call itself survives the ongoing cancellation
            await asyncio.shield(self.service.cancel(handle))
            logger.debug("Remote job cancel requested", request_id=request.request_id, job_id=handle.job_id)
        except Exception as e:
            logger.warning(
                "Remote job cancellation failed",
                request_id=request.request_id,
                job_id=handle.job_id,
                error=str(e),
            )
