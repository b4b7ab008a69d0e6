"""
Shared fixtures for bqbatch tests.

FakeQueryService is a scripted, in-memory QueryService. Each SQL string maps
to a ScriptedQuery describing how long the job runs, what it returns, and
which errors it raises on successive attempts. The fake records start/end
timestamps and the peak number of jobs in flight.
"""

import itertools
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pytest

from bqbatch.domain.base_enums import ErrorKind, JobStatus
from bqbatch.domain.errors import ExecutionError
from bqbatch.domain.responses import JobHandle, QueryResult
from bqbatch.infrastructure.query_service import QueryService


@dataclass
class ScriptedQuery:
    """Behavior of one SQL string in the fake service."""

    delay: float = 0.0
    rows: List[Dict[str, Any]] = field(default_factory=list)
    column_names: List[str] = field(default_factory=list)
    bytes_processed: int = 0
    # Raised on successive attempts, one per attempt, before the query succeeds
    errors: List[ExecutionError] = field(default_factory=list)
    # Raised on every attempt
    always_fail: Optional[ExecutionError] = None


@dataclass
class _FakeJob:
    sql: str
    ready_at: float
    error: Optional[ExecutionError]


class FakeQueryService(QueryService):
    def __init__(self, scripts: Optional[Dict[str, ScriptedQuery]] = None, healthy: bool = True):
        self.scripts = scripts or {}
        self.healthy = healthy
        self.connected = True
        self.submitted: List[str] = []
        self.cancelled: List[str] = []
        self.intervals: Dict[str, List[Tuple[float, float]]] = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self._jobs: Dict[str, _FakeJob] = {}
        self._started: Dict[str, float] = {}
        self._ids = itertools.count(1)
        self._attempts: Dict[str, int] = {}

    def add(self, sql: str, script: ScriptedQuery) -> None:
        self.scripts[sql] = script

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    def is_connected(self) -> bool:
        return self.connected

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy" if self.healthy else "unhealthy", "connected": self.connected}

    def _finish(self, job_id: str) -> None:
        job = self._jobs.pop(job_id)
        started = self._started.pop(job_id)
        self.intervals.setdefault(job.sql, []).append((started, time.monotonic()))
        self.in_flight -= 1

    async def submit(self, sql: str) -> JobHandle:
        script = self.scripts.get(sql, ScriptedQuery())
        attempt = self._attempts.get(sql, 0)
        self._attempts[sql] = attempt + 1

        error = script.always_fail
        if error is None and attempt < len(script.errors):
            error = script.errors[attempt]

        job_id = f"job-{next(self._ids)}"
        self._jobs[job_id] = _FakeJob(sql=sql, ready_at=time.monotonic() + script.delay, error=error)
        self._started[job_id] = time.monotonic()
        self.submitted.append(sql)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        return JobHandle(job_id=job_id)

    async def poll(self, handle: JobHandle) -> JobStatus:
        job = self._jobs[handle.job_id]
        return JobStatus.DONE if time.monotonic() >= job.ready_at else JobStatus.RUNNING

    async def fetch_result(self, handle: JobHandle) -> QueryResult:
        job = self._jobs[handle.job_id]
        self._finish(handle.job_id)
        if job.error is not None:
            raise job.error
        script = self.scripts.get(job.sql, ScriptedQuery())
        return QueryResult(
            rows=[dict(row) for row in script.rows],
            column_names=list(script.column_names),
            bytes_processed=script.bytes_processed,
        )

    async def cancel(self, handle: JobHandle) -> None:
        if handle.job_id in self._jobs:
            self.cancelled.append(self._jobs[handle.job_id].sql)
            self._finish(handle.job_id)

    def attempts(self, sql: str) -> int:
        return self._attempts.get(sql, 0)


def transient(message: str = "backend error") -> ExecutionError:
    return ExecutionError(message, kind=ErrorKind.TRANSIENT)


@pytest.fixture
def fake_service():
    return FakeQueryService()


@pytest.fixture
def fast_config():
    """Executor configuration with a short poll interval."""
    return {"poll_interval_seconds": 0.001}

