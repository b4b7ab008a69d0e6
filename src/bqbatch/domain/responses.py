"""
Result models for the bqbatch library.

These models describe what comes back from the remote service and from the
batch executor: job handles, raw query results, per-query outcomes, the
batch report and its summary.
"""

from collections.abc import Mapping
from types import MappingProxyType
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .base_enums import ErrorKind, OutcomeStatus


class JobHandle(BaseModel):
    """Opaque reference to a job submitted to the remote service."""

    model_config = ConfigDict(frozen=True)

    job_id: str = Field(..., description="Remote job identifier")
    location: Optional[str] = Field(default=None, description="Region the job runs in, when the service has one")


class QueryResult(BaseModel):
    """Rows and statistics of a finished remote job."""

    rows: List[Dict[str, Any]] = Field(default_factory=list, description="Result rows")
    column_names: List[str] = Field(default_factory=list, description="Column names in schema order, present even for zero rows")
    bytes_processed: int = Field(default=0, ge=0, description="Bytes scanned by the remote engine")


# =============================================================================
# Execution Outcomes
# =============================================================================


class SuccessOutcome(BaseModel):
    """A query that completed and returned rows."""

    model_config = ConfigDict(frozen=True)

    status: Literal[OutcomeStatus.SUCCESS] = OutcomeStatus.SUCCESS
    request_id: str
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    column_names: List[str] = Field(default_factory=list)
    bytes_processed: int = Field(default=0, ge=0)
    attempts: int = Field(default=1, ge=1, description="Attempts made, including retries")
    elapsed_ms: float = Field(default=0.0, ge=0)

    @property
    def is_success(self) -> bool:
        return True

    @property
    def row_count(self) -> int:
        return len(self.rows)


class FailureOutcome(BaseModel):
    """A query that failed, timed out or exhausted its retries."""

    model_config = ConfigDict(frozen=True)

    status: Literal[OutcomeStatus.FAILURE] = OutcomeStatus.FAILURE
    request_id: str
    error_kind: ErrorKind
    message: str
    attempts: int = Field(default=1, ge=0, description="Attempts made; 0 when no attempt started")
    elapsed_ms: float = Field(default=0.0, ge=0)

    @property
    def is_success(self) -> bool:
        return False


ExecutionOutcome = Annotated[
    Union[SuccessOutcome, FailureOutcome],
    Field(discriminator="status"),
]


# =============================================================================
# Batch Report
# =============================================================================


@dataclass(frozen=True, eq=False)
class BatchReport(Mapping):
    """
    Outcomes of one batch, keyed by request id.

    Iteration follows submission order, not completion order. A report of a
    cancelled batch has `cancelled=True` and holds only the requests that
    reached a terminal state before cancellation.
    """

    outcomes: Mapping[str, ExecutionOutcome] = field(default_factory=dict)
    cancelled: bool = False
    batch_id: Optional[str] = None

    # Mapping equality compares outcomes; a report holds mutable rows, so it is not hashable
    __hash__ = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "outcomes", MappingProxyType(dict(self.outcomes)))

    def __getitem__(self, request_id: str) -> ExecutionOutcome:
        return self.outcomes[request_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)

    def successes(self) -> List[SuccessOutcome]:
        return [o for o in self.outcomes.values() if isinstance(o, SuccessOutcome)]

    def failures(self) -> List[FailureOutcome]:
        return [o for o in self.outcomes.values() if isinstance(o, FailureOutcome)]

    @property
    def success_count(self) -> int:
        return len(self.successes())

    @property
    def failure_count(self) -> int:
        return len(self.failures())


class BatchSummary(BaseModel):
    """Aggregate counters over a set of outcomes."""

    total_rows: int = Field(..., description="Rows returned by successful queries")
    total_bytes_processed: int = Field(..., description="Bytes processed by successful queries")
    success_count: int = Field(..., description="Number of successful queries")
    failure_count: int = Field(..., description="Number of failed queries")
