"""Unit tests for QueryBuilder."""

import pytest

from bqbatch.domain.base_enums import SortDirection
from bqbatch.domain.errors import ConfigurationError
from bqbatch.domain.requests import ExecutionRequest
from bqbatch.services.query_builder import QueryBuilder


def _orders_builder() -> QueryBuilder:
    return (
        QueryBuilder("orders")
        .select_fields("customer_id", "SUM(amount) AS total")
        .where_condition("order_date >= '2024-01-01'")
        .group_by("customer_id")
        .order_by("total", "DESC")
        .limit(10)
    )


class TestRendering:

    def test_orders_scenario(self):
        assert _orders_builder().build() == (
            "SELECT customer_id, SUM(amount) AS total\n"
            "FROM orders\n"
            "WHERE order_date >= '2024-01-01'\n"
            "GROUP BY customer_id\n"
            "ORDER BY total DESC\n"
            "LIMIT 10"
        )

    def test_build_is_deterministic(self):
        builder = _orders_builder()
        assert builder.build() == builder.build()

    def test_build_does_not_mutate_state(self):
        builder = _orders_builder()
        spec_before = builder.spec
        builder.build()
        assert builder.spec == spec_before

    def test_select_star_when_no_fields(self):
        assert QueryBuilder("events").build() == "SELECT *\nFROM events"

    def test_unpopulated_clauses_omitted(self):
        query = QueryBuilder("events").where_condition("kind = 'click'").limit(5).build()
        assert query == "SELECT *\nFROM events\nWHERE kind = 'click'\nLIMIT 5"

    def test_multiple_where_conditions_combined_with_and(self):
        query = (
            QueryBuilder("events")
            .where_condition("kind = 'click'")
            .where_condition("ts >= '2024-01-01'")
            .build()
        )
        assert query.endswith("WHERE kind = 'click' AND ts >= '2024-01-01'")

    def test_select_fields_preserve_insertion_order(self):
        query = QueryBuilder("t").select_fields("b").select_fields("a", "c").build()
        assert query.startswith("SELECT b, a, c\n")

    def test_multiple_order_keys(self):
        query = QueryBuilder("t").order_by("a", "desc").order_by("b").build()
        assert query.endswith("ORDER BY a DESC, b ASC")

    @pytest.mark.parametrize("direction", ["desc", "Desc", " DESC "])
    def test_order_by_direction_is_case_insensitive(self, direction):
        query = QueryBuilder("t").order_by("a", direction).build()
        assert query.endswith("ORDER BY a DESC")

    def test_order_by_accepts_enum(self):
        query = QueryBuilder("t").order_by("a", SortDirection.DESC).build()
        assert query.endswith("ORDER BY a DESC")

    def test_limit_last_write_wins(self):
        query = QueryBuilder("t").limit(5).limit(10).build()
        assert query.endswith("LIMIT 10")
        assert "LIMIT 5" not in query

    def test_methods_return_same_builder(self):
        builder = QueryBuilder("t")
        assert builder.select_fields("a") is builder
        assert builder.where_condition("a > 1") is builder
        assert builder.group_by("a") is builder
        assert builder.order_by("a") is builder
        assert builder.limit(1) is builder

    def test_to_request(self):
        request = QueryBuilder("t").limit(1).to_request("probe")

        assert isinstance(request, ExecutionRequest)
        assert request.request_id == "probe"
        assert request.sql == "SELECT *\nFROM t\nLIMIT 1"


class TestValidation:

    def test_invalid_direction(self):
        with pytest.raises(ConfigurationError):
            QueryBuilder("t").order_by("x", "UP")

    @pytest.mark.parametrize("predicate", ["", "   ", "\n"])
    def test_empty_predicate(self, predicate):
        with pytest.raises(ConfigurationError):
            QueryBuilder("t").where_condition(predicate)

    @pytest.mark.parametrize("value", [0, -3, True, 2.5, "10"])
    def test_invalid_limit(self, value):
        with pytest.raises(ConfigurationError):
            QueryBuilder("t").limit(value)

    def test_empty_select_field(self):
        with pytest.raises(ConfigurationError):
            QueryBuilder("t").select_fields("a", "")

    def test_empty_group_by_field(self):
        with pytest.raises(ConfigurationError):
            QueryBuilder("t").group_by(" ")

    def test_empty_order_by_field(self):
        with pytest.raises(ConfigurationError):
            QueryBuilder("t").order_by("", "ASC")

    def test_empty_table(self):
        with pytest.raises(ConfigurationError):
            QueryBuilder("  ")

    def test_failed_call_leaves_state_untouched(self):
        builder = QueryBuilder("t").select_fields("a")
        with pytest.raises(ConfigurationError):
            builder.select_fields("b", "")
        assert builder.build() == "SELECT a\nFROM t"

    def test_error_code(self):
        with pytest.raises(ConfigurationError) as exc_info:
            QueryBuilder("t").limit(0)
        assert exc_info.value.to_dict()["error_code"] == "CONFIGURATION_ERROR"
