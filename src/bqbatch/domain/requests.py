"""
Request models for the bqbatch library.

An ExecutionRequest is what the batch executor consumes: a rendered query
plus a caller-chosen identifier used to correlate the outcome.
"""

from pydantic import BaseModel, ConfigDict, Field


class ExecutionRequest(BaseModel):
    """A rendered query submitted as one unit of a batch."""

    model_config = ConfigDict(frozen=True)

    request_id: str = Field(
        ...,
        description="Caller-supplied identifier, unique within a batch. "
                    "Example: 'daily_revenue'",
        min_length=1,
    )
    sql: str = Field(
        ...,
        description="Rendered query text, passed to the remote service unchanged",
        min_length=1,
    )
