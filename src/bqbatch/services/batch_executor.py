"""
Batch execution service.

Runs a collection of independent queries against a remote execution
service and collects one outcome per query into a BatchReport.

Guarantees:
- Isolation: a failing query never prevents its siblings from completing
- Completeness: every request gets exactly one outcome (unless the batch is cancelled)
- Order: the report follows submission order, not completion order
- Bounded concurrency: at most max_concurrency queries in flight

Per-query failures are recorded as FailureOutcome and never raised out of
run(). Problems that prevent the batch from starting at all raise
BatchStructuralError before anything is dispatched.

Usage:
    executor = BatchExecutor(service, {"max_concurrency": 4, "per_query_timeout_seconds": 300})
    report = await executor.run([
        QueryBuilder("orders").select_fields("COUNT(*) AS n").to_request("order_count"),
        ExecutionRequest(request_id="raw", sql="SELECT 1 AS x"),
    ])
    print(report.success_count, report.failure_count)
"""

import asyncio
import time
from contextlib import nullcontext
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from bqbatch.config import ExecutorConfig, get_settings
from bqbatch.domain.base_enums import ErrorKind
from bqbatch.domain.errors import BatchStructuralError, ExecutionError
from bqbatch.domain.requests import ExecutionRequest
from bqbatch.domain.responses import (
    BatchReport,
    ExecutionOutcome,
    FailureOutcome,
    QueryResult,
    SuccessOutcome,
)
from bqbatch.infrastructure.query_service import QueryService
from bqbatch.repositories.query_execution import QueryExecutionRepository
from bqbatch.utils.logging import get_module_logger
from bqbatch.utils.retry import compute_backoff, is_retryable
from bqbatch.utils.tracing import generate_batch_id, reset_batch_id, set_batch_id

logger = get_module_logger()


class _AttemptCounter:
    """Attempts made for one request; survives cancellation of the retry loop."""

    def __init__(self) -> None:
        self.count = 0


class BatchExecutor:
    """
    Service for concurrent batch execution.

    One executor may run many batches; each run() call is independent.
    """

    def __init__(
        self,
        service: QueryService,
        config: Optional[Union[ExecutorConfig, Dict[str, Any]]] = None,
    ):
        """
        Args:
            service: Connected remote execution service
            config: Executor configuration, as a model or a plain dict.
                Defaults to get_settings().executor.

        Raises:
            BatchStructuralError: If the configuration is invalid
        """
        self.service = service
        self.config = self._validate_config(config)
        self.repository = QueryExecutionRepository(
            service,
            poll_interval_seconds=self.config.poll_interval_seconds,
        )

        logger.info(
            "BatchExecutor initialized",
            max_concurrency=self.config.max_concurrency,
            per_query_timeout_seconds=self.config.per_query_timeout_seconds,
            max_attempts=self.config.retry.max_attempts,
        )

    @staticmethod
    def _validate_config(config: Optional[Union[ExecutorConfig, Dict[str, Any]]]) -> ExecutorConfig:
        if config is None:
            return get_settings().executor
        try:
            if isinstance(config, ExecutorConfig):
                # Revalidate: model_construct() or attribute assignment can bypass validation
                return ExecutorConfig.model_validate(config.model_dump())
            return ExecutorConfig.model_validate(config)
        except ValidationError as e:
            raise BatchStructuralError(
                f"Invalid executor configuration: {e.error_count()} error(s)",
                details={"errors": [
                    {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ]},
            ) from e

    async def run(
        self,
        requests: Sequence[ExecutionRequest],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchReport:
        """
        Execute every request and collect their outcomes.

        Args:
            requests: Requests to run, in the order the report should follow
            cancel_event: Optional event; setting it cancels the batch. In-flight
                queries are cancelled, queries not yet dispatched never start.

        Returns:
            BatchReport with one outcome per request, or a partial report
            with cancelled=True when cancel_event was set

        Raises:
            BatchStructuralError: Duplicate request ids, or the service failed
                its preflight health check
        """
        batch_id = generate_batch_id()
        token = set_batch_id(batch_id)
        try:
            return await self._run_batch(batch_id, requests, cancel_event)
        finally:
            reset_batch_id(token)

    async def _run_batch(
        self,
        batch_id: str,
        requests: Sequence[ExecutionRequest],
        cancel_event: Optional[asyncio.Event],
    ) -> BatchReport:
        self._check_unique_ids(requests)

        if not requests:
            logger.info("Empty batch, nothing to dispatch")
            return BatchReport(outcomes={}, cancelled=False, batch_id=batch_id)

        if self.config.preflight_health_check:
            await self._preflight()

        logger.info(
            "Dispatching batch",
            request_count=len(requests),
            max_concurrency=self.config.max_concurrency,
        )

        # One slot per request; each unit writes only its own index
        slots: List[Optional[ExecutionOutcome]] = [None] * len(requests)
        semaphore = (
            asyncio.Semaphore(self.config.max_concurrency)
            if self.config.max_concurrency is not None
            else None
        )

        tasks = [
            asyncio.create_task(
                self._run_unit(index, request, slots, semaphore, cancel_event),
                name=f"bqbatch-{request.request_id}",
            )
            for index, request in enumerate(requests)
        ]

        watcher: Optional[asyncio.Task] = None
        if cancel_event is not None:
            watcher = asyncio.create_task(self._cancel_on_event(cancel_event, tasks))

        try:
            results = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            if watcher is not None:
                watcher.cancel()
                await asyncio.gather(watcher, return_exceptions=True)

        cancelled = any(isinstance(result, asyncio.CancelledError) for result in results) or (
            cancel_event is not None and cancel_event.is_set() and any(slot is None for slot in slots)
        )

        outcomes: Dict[str, ExecutionOutcome] = {
            request.request_id: slot
            for request, slot in zip(requests, slots)
            if slot is not None
        }
        report = BatchReport(outcomes=outcomes, cancelled=cancelled, batch_id=batch_id)

        logger.info(
            "Batch finished",
            success_count=report.success_count,
            failure_count=report.failure_count,
            cancelled=cancelled,
            missing_count=len(requests) - len(outcomes),
        )
        return report

    @staticmethod
    def _check_unique_ids(requests: Sequence[ExecutionRequest]) -> None:
        seen = set()
        duplicates = []
        for request in requests:
            if request.request_id in seen:
                duplicates.append(request.request_id)
            seen.add(request.request_id)
        if duplicates:
            raise BatchStructuralError(
                "Request ids must be unique within a batch",
                details={"duplicates": sorted(set(duplicates))},
            )

    async def _preflight(self) -> None:
        try:
            health = await self.service.health_check()
        except Exception as e:
            raise BatchStructuralError(f"Remote service health check failed: {e}") from e

        if health.get("status") != "healthy":
            logger.error("Remote service unhealthy, batch not dispatched", health=health)
            raise BatchStructuralError(
                "Remote service is not healthy",
                details={"health": health},
            )

    @staticmethod
    async def _cancel_on_event(cancel_event: asyncio.Event, tasks: List[asyncio.Task]) -> None:
        await cancel_event.wait()
        logger.warning("Batch cancellation requested")
        for task in tasks:
            task.cancel()

    async def _run_unit(
        self,
        index: int,
        request: ExecutionRequest,
        slots: List[Optional[ExecutionOutcome]],
        semaphore: Optional[asyncio.Semaphore],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        async with semaphore if semaphore is not None else nullcontext():
            if cancel_event is not None and cancel_event.is_set():
                return
            slots[index] = await self._execute_request(request)

    async def _execute_request(self, request: ExecutionRequest) -> ExecutionOutcome:
        """Run one request to a terminal outcome. Never raises except on cancellation."""
        counter = _AttemptCounter()
        started = time.monotonic()
        timeout = self.config.per_query_timeout_seconds

        try:
            if timeout is not None:
                result = await asyncio.wait_for(self._execute_with_retry(request, counter), timeout)
            else:
                result = await self._execute_with_retry(request, counter)

        except asyncio.TimeoutError:
            logger.warning(
                "Query timed out",
                request_id=request.request_id,
                timeout_seconds=timeout,
                attempts=counter.count,
            )
            return FailureOutcome(
                request_id=request.request_id,
                error_kind=ErrorKind.TIMEOUT,
                message=f"Query exceeded the per-query timeout of {timeout}s",
                attempts=counter.count,
                elapsed_ms=self._elapsed_ms(started),
            )

        except ExecutionError as e:
            logger.warning(
                "Query failed",
                request_id=request.request_id,
                kind=e.kind.value,
                error=e.message,
                attempts=counter.count,
            )
            return FailureOutcome(
                request_id=request.request_id,
                error_kind=e.kind,
                message=e.message,
                attempts=counter.count,
                elapsed_ms=self._elapsed_ms(started),
            )

        except Exception as e:
            logger.error(
                "Unexpected error while executing query",
                request_id=request.request_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return FailureOutcome(
                request_id=request.request_id,
                error_kind=ErrorKind.UNKNOWN,
                message=f"Unexpected error: {e}",
                attempts=counter.count,
                elapsed_ms=self._elapsed_ms(started),
            )

        logger.info(
            "Query succeeded",
            request_id=request.request_id,
            row_count=len(result.rows),
            bytes_processed=result.bytes_processed,
            attempts=counter.count,
        )
        return SuccessOutcome(
            request_id=request.request_id,
            rows=result.rows,
            column_names=result.column_names,
            bytes_processed=result.bytes_processed,
            attempts=counter.count,
            elapsed_ms=self._elapsed_ms(started),
        )

    async def _execute_with_retry(self, request: ExecutionRequest, counter: _AttemptCounter) -> QueryResult:
        policy = self.config.retry

        while True:
            counter.count += 1
            try:
                return await self.repository.execute(request)
            except ExecutionError as e:
                if counter.count >= policy.max_attempts or not is_retryable(e, policy):
                    raise

                delay = compute_backoff(counter.count, policy.backoff_base_seconds, policy.backoff_max_seconds)
                logger.info(
                    "Retrying query after transient failure",
                    request_id=request.request_id,
                    attempt=counter.count,
                    kind=e.kind.value,
                    delay_seconds=delay,
                )
                await asyncio.sleep(delay)

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.monotonic() - started) * 1000
