"""
Contract for remote query execution services.

The batch executor never talks to a warehouse directly. It drives jobs
through this interface: submit a query, poll its status, fetch its result,
and cancel it when a timeout or a batch cancellation requires it.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from ..domain.base_enums import JobStatus
from ..domain.responses import JobHandle, QueryResult


class QueryService(ABC):
    """
    Abstract remote execution service.

    Implementations translate provider errors into ExecutionError with an
    ErrorKind, so the executor can decide whether a failure is retryable.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open connections / create the provider client."""

    @abstractmethod
    async def close(self) -> None:
        """Release provider resources."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the service client is connected."""

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """
        Check that the service is reachable.

        Returns:
            Dictionary with at least a "status" key ("healthy" or "unhealthy")
        """

    @abstractmethod
    async def submit(self, sql: str) -> JobHandle:
        """
        Start a query job.

        Raises:
            ExecutionError: If the service refuses the job outright
        """

    @abstractmethod
    async def poll(self, handle: JobHandle) -> JobStatus:
        """Return the current state of a job."""

    @abstractmethod
    async def fetch_result(self, handle: JobHandle) -> QueryResult:
        """
        Return rows and statistics of a finished job.

        Raises:
            ExecutionError: If the job failed, classified by ErrorKind
        """

    @abstractmethod
    async def cancel(self, handle: JobHandle) -> None:
        """Request cancellation of a job. Best-effort."""
