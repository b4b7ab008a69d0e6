"""
Fluent query builder.

Accumulates clauses into a QuerySpec and renders it. Every mutating call
validates its input immediately and raises ConfigurationError at the call
that introduced the bad value; build() itself never fails.

Usage:
    query = (
        QueryBuilder("orders")
        .select_fields("customer_id", "SUM(amount) AS total")
        .where_condition("order_date >= '2024-01-01'")
        .group_by("customer_id")
        .order_by("total", "DESC")
        .limit(10)
        .build()
    )
"""

from typing import Union

from bqbatch.domain.base_enums import ClauseKind, SortDirection
from bqbatch.domain.clauses import (
    GroupByClause,
    LimitClause,
    OrderByClause,
    OrderItem,
    QuerySpec,
    SelectClause,
    WhereClause,
)
from bqbatch.domain.errors import ConfigurationError
from bqbatch.domain.requests import ExecutionRequest


def _require_text(value: object, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(
            f"{what} must be a non-empty string",
            details={"value": repr(value)},
        )
    return value


def _parse_direction(direction: Union[str, SortDirection]) -> SortDirection:
    if isinstance(direction, SortDirection):
        return direction
    if isinstance(direction, str):
        try:
            return SortDirection(direction.strip().upper())
        except ValueError:
            pass
    raise ConfigurationError(
        f"ORDER BY direction must be ASC or DESC, got {direction!r}",
        details={"direction": repr(direction)},
    )


class QueryBuilder:
    """
    Builder for SELECT queries over one base table.

    List-valued clauses (SELECT, WHERE, GROUP BY, ORDER BY) append;
    LIMIT is a set operation where the last call wins.
    """

    def __init__(self, table: str):
        self._spec = QuerySpec(table=_require_text(table, "Base table"))

    @property
    def spec(self) -> QuerySpec:
        """Accumulated state. QuerySpec is immutable, so this is safe to share."""
        return self._spec

    def select_fields(self, *fields: str) -> "QueryBuilder":
        for field in fields:
            _require_text(field, "SELECT field")
        if fields:
            current = self._spec.clauses.get(ClauseKind.SELECT, SelectClause())
            self._spec = self._spec.with_clause(current.append(*fields))
        return self

    def where_condition(self, predicate: str) -> "QueryBuilder":
        _require_text(predicate, "WHERE predicate")
        current = self._spec.clauses.get(ClauseKind.WHERE, WhereClause())
        self._spec = self._spec.with_clause(current.append(predicate))
        return self

    def group_by(self, *fields: str) -> "QueryBuilder":
        for field in fields:
            _require_text(field, "GROUP BY field")
        if fields:
            current = self._spec.clauses.get(ClauseKind.GROUP_BY, GroupByClause())
            self._spec = self._spec.with_clause(current.append(*fields))
        return self

    def order_by(self, field: str, direction: Union[str, SortDirection] = SortDirection.ASC) -> "QueryBuilder":
        """
        Append an ORDER BY key.

        direction is a SortDirection or the string "ASC" / "DESC". Strings are
        matched case-insensitively after trimming whitespace, so "desc" renders
        as DESC. Any other value raises ConfigurationError.
        """
        item = OrderItem(
            field=_require_text(field, "ORDER BY field"),
            direction=_parse_direction(direction),
        )
        current = self._spec.clauses.get(ClauseKind.ORDER_BY, OrderByClause())
        self._spec = self._spec.with_clause(current.append(item))
        return self

    def limit(self, n: int) -> "QueryBuilder":
        # bool is an int subclass; LIMIT True is a caller mistake
        if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
            raise ConfigurationError(
                f"LIMIT must be a positive integer, got {n!r}",
                details={"value": repr(n)},
            )
        self._spec = self._spec.with_clause(LimitClause(count=n))
        return self

    def build(self) -> str:
        """Render the accumulated query. Pure: repeated calls return equal strings."""
        return self._spec.render()

    def to_request(self, request_id: str) -> ExecutionRequest:
        """Render the query and wrap it for batch execution."""
        return ExecutionRequest(
            request_id=_require_text(request_id, "Request id"),
            sql=self.build(),
        )

    def __repr__(self) -> str:
        return f"QueryBuilder(table={self._spec.table!r}, clauses={[kind.value for kind in self._spec.clauses]})"
