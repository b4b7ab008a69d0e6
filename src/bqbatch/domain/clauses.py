"""
Clause model for query construction.

Each clause is an immutable value that knows how to render its own line.
Accumulating onto a clause produces a new clause value, so a QuerySpec
never holds a half-updated fragment.

The Clause union is discriminated on `kind`, which lets a QuerySpec be
validated from (and dumped to) plain dictionaries.
"""

from typing import Annotated, Dict, List, Literal, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from .base_enums import ClauseKind, SortDirection


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must be a non-empty string")
    return value


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]

# Rendering order after SELECT and FROM
CLAUSE_ORDER = (
    ClauseKind.WHERE,
    ClauseKind.GROUP_BY,
    ClauseKind.ORDER_BY,
    ClauseKind.LIMIT,
)


class BaseClause(BaseModel):
    """Base class for query clauses."""

    model_config = ConfigDict(frozen=True)

    def is_empty(self) -> bool:
        return False

    def render(self) -> str:
        raise NotImplementedError


class SelectClause(BaseClause):
    """Projected fields or expressions, in insertion order."""

    kind: Literal[ClauseKind.SELECT] = ClauseKind.SELECT
    fields: List[NonBlankStr] = Field(default_factory=list, description="Field names or expressions such as 'SUM(x) AS total'")

    def append(self, *fields: str) -> "SelectClause":
        return SelectClause(fields=[*self.fields, *fields])

    def is_empty(self) -> bool:
        return not self.fields

    def render(self) -> str:
        return "SELECT " + ", ".join(self.fields)


class WhereClause(BaseClause):
    """Filter predicates, combined with AND."""

    kind: Literal[ClauseKind.WHERE] = ClauseKind.WHERE
    predicates: List[NonBlankStr] = Field(default_factory=list)

    def append(self, predicate: str) -> "WhereClause":
        return WhereClause(predicates=[*self.predicates, predicate])

    def is_empty(self) -> bool:
        return not self.predicates

    def render(self) -> str:
        return "WHERE " + " AND ".join(self.predicates)


class GroupByClause(BaseClause):
    kind: Literal[ClauseKind.GROUP_BY] = ClauseKind.GROUP_BY
    fields: List[NonBlankStr] = Field(default_factory=list)

    def append(self, *fields: str) -> "GroupByClause":
        return GroupByClause(fields=[*self.fields, *fields])

    def is_empty(self) -> bool:
        return not self.fields

    def render(self) -> str:
        return "GROUP BY " + ", ".join(self.fields)


class OrderItem(BaseModel):
    """One ORDER BY key."""

    model_config = ConfigDict(frozen=True)

    field: NonBlankStr
    direction: SortDirection = SortDirection.ASC

    def render(self) -> str:
        return f"{self.field} {self.direction.value}"


class OrderByClause(BaseClause):
    kind: Literal[ClauseKind.ORDER_BY] = ClauseKind.ORDER_BY
    items: List[OrderItem] = Field(default_factory=list)

    def append(self, item: OrderItem) -> "OrderByClause":
        return OrderByClause(items=[*self.items, item])

    def is_empty(self) -> bool:
        return not self.items

    def render(self) -> str:
        return "ORDER BY " + ", ".join(item.render() for item in self.items)


class LimitClause(BaseClause):
    """Row limit. A QuerySpec holds at most one; setting it again replaces it."""

    kind: Literal[ClauseKind.LIMIT] = ClauseKind.LIMIT
    count: int = Field(..., gt=0, strict=True)

    def render(self) -> str:
        return f"LIMIT {self.count}"


Clause = Annotated[
    Union[SelectClause, WhereClause, GroupByClause, OrderByClause, LimitClause],
    Field(discriminator="kind"),
]


class QuerySpec(BaseModel):
    """
    Accumulated state of one query: a base table plus its clauses.

    Rendering is a pure projection of this state; it never mutates it.
    """

    model_config = ConfigDict(frozen=True)

    table: NonBlankStr = Field(..., description="Base table identifier, e.g. 'project.dataset.orders'")
    clauses: Dict[ClauseKind, Clause] = Field(default_factory=dict)

    def with_clause(self, clause: BaseClause) -> "QuerySpec":
        """Return a copy of this spec with `clause` stored under its kind."""
        clauses = dict(self.clauses)
        clauses[clause.kind] = clause  # type: ignore[attr-defined]
        return QuerySpec(table=self.table, clauses=clauses)

    def render(self) -> str:
        """
        Render the query in fixed clause order.

        SELECT → FROM → WHERE → GROUP BY → ORDER BY → LIMIT, one clause per
        line, omitting clauses with no data. No SELECT fields renders SELECT *.
        """
        select = self.clauses.get(ClauseKind.SELECT)
        lines = [
            select.render() if select is not None and not select.is_empty() else "SELECT *",
            f"FROM {self.table}",
        ]
        for kind in CLAUSE_ORDER:
            clause = self.clauses.get(kind)
            if clause is not None and not clause.is_empty():
                lines.append(clause.render())
        return "\n".join(lines)
