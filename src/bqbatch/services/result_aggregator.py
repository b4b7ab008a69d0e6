"""
Result aggregation service.

Turns the outcomes of a batch into shapes downstream code can consume:
one combined table (merge) or aggregate counters (summarize).
"""

from typing import Any, Dict, Iterable, List, Union

from bqbatch.domain.errors import AggregationError
from bqbatch.domain.responses import (
    BatchReport,
    BatchSummary,
    ExecutionOutcome,
    SuccessOutcome,
)
from bqbatch.utils.logging import get_module_logger

logger = get_module_logger()

OutcomeSource = Union[BatchReport, Iterable[ExecutionOutcome]]


def _as_outcomes(source: OutcomeSource) -> List[ExecutionOutcome]:
    if isinstance(source, BatchReport):
        return list(source.values())
    return list(source)


class ResultAggregator:
    """
    Normalizes successful outcomes into a uniform tabular shape.

    Failures are ignored by merge() and only counted by summarize().
    """

    def merge(self, outcomes: OutcomeSource) -> List[Dict[str, Any]]:
        """
        Concatenate the rows of all successful outcomes.

        All successes must share the same set of column names; columns are
        never unioned or padded. Rows come back in submission order, each
        with its keys in the first outcome's column order.

        A success with no rows and no reported column names carries no
        schema to compare, so it is skipped rather than treated as an
        empty column set.

        Args:
            outcomes: A BatchReport or any iterable of outcomes

        Returns:
            Combined rows (empty when there are no successes)

        Raises:
            AggregationError: If two successful outcomes have different column sets
        """
        successes = [
            o for o in _as_outcomes(outcomes)
            if isinstance(o, SuccessOutcome) and (o.column_names or o.rows)
        ]
        if not successes:
            return []

        reference = successes[0]
        columns = self._columns_of(reference)
        expected = set(columns)

        for outcome in successes[1:]:
            actual = set(self._columns_of(outcome))
            if actual != expected:
                logger.warning(
                    "Cannot merge outcomes with different columns",
                    reference_request_id=reference.request_id,
                    request_id=outcome.request_id,
                )
                raise AggregationError(
                    f"Column mismatch between '{reference.request_id}' and '{outcome.request_id}'",
                    details={
                        "reference_request_id": reference.request_id,
                        "request_id": outcome.request_id,
                        "missing_columns": sorted(expected - actual),
                        "unexpected_columns": sorted(actual - expected),
                    },
                )

        merged = [
            {column: row.get(column) for column in columns}
            for outcome in successes
            for row in outcome.rows
        ]

        logger.info(
            "Merged batch results",
            outcome_count=len(successes),
            row_count=len(merged),
            column_count=len(columns),
        )
        return merged

    def summarize(self, outcomes: OutcomeSource) -> BatchSummary:
        """Aggregate counters over all outcomes. Never fails."""
        total_rows = 0
        total_bytes = 0
        success_count = 0
        failure_count = 0

        for outcome in _as_outcomes(outcomes):
            if isinstance(outcome, SuccessOutcome):
                success_count += 1
                total_rows += outcome.row_count
                total_bytes += outcome.bytes_processed
            else:
                failure_count += 1

        return BatchSummary(
            total_rows=total_rows,
            total_bytes_processed=total_bytes,
            success_count=success_count,
            failure_count=failure_count,
        )

    @staticmethod
    def _columns_of(outcome: SuccessOutcome) -> List[str]:
        """Column names of an outcome; falls back to the first row's keys."""
        if outcome.column_names:
            return list(outcome.column_names)
        if outcome.rows:
            return list(outcome.rows[0].keys())
        return []
