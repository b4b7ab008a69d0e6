"""Unit tests for batch definition loading."""

import pytest

from bqbatch.domain.errors import ConfigurationError
from bqbatch.utils.yaml_loader import load_batch_file, parse_batch_definition


BATCH_YAML = """
queries:
  - id: top_customers
    table: orders
    select: [customer_id, "SUM(amount) AS total"]
    where: "order_date >= '2024-01-01'"
    group_by: customer_id
    order_by:
      - {field: total, direction: DESC}
    limit: 10
  - id: recent_events
    table: events
    order_by: ["ts DESC", "id"]
  - id: heartbeat
    sql: |
      SELECT 1 AS ok
"""


class TestLoadBatchFile:

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "batch.yaml"
        path.write_text(BATCH_YAML, encoding="utf-8")

        requests = load_batch_file(path)

        assert [r.request_id for r in requests] == ["top_customers", "recent_events", "heartbeat"]
        assert requests[0].sql == (
            "SELECT customer_id, SUM(amount) AS total\n"
            "FROM orders\n"
            "WHERE order_date >= '2024-01-01'\n"
            "GROUP BY customer_id\n"
            "ORDER BY total DESC\n"
            "LIMIT 10"
        )
        assert requests[1].sql == "SELECT *\nFROM events\nORDER BY ts DESC, id ASC"
        assert requests[2].sql == "SELECT 1 AS ok"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_batch_file(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("queries: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_batch_file(path)


class TestParseBatchDefinition:

    @pytest.mark.parametrize("content", [None, {}, {"queries": "nope"}, {"queries": ["SELECT 1"]}])
    def test_malformed_root(self, content):
        with pytest.raises(ConfigurationError):
            parse_batch_definition(content)

    def test_missing_id(self):
        with pytest.raises(ConfigurationError):
            parse_batch_definition({"queries": [{"sql": "SELECT 1"}]})

    def test_sql_and_builder_keys_conflict(self):
        with pytest.raises(ConfigurationError):
            parse_batch_definition({"queries": [{"id": "x", "sql": "SELECT 1", "table": "t"}]})

    def test_needs_sql_or_table(self):
        with pytest.raises(ConfigurationError):
            parse_batch_definition({"queries": [{"id": "x", "limit": 3}]})

    def test_builder_validation_applies(self):
        with pytest.raises(ConfigurationError):
            parse_batch_definition({"queries": [{"id": "x", "table": "t", "order_by": [{"field": "a", "direction": "UP"}]}]})

    def test_invalid_limit(self):
        with pytest.raises(ConfigurationError):
            parse_batch_definition({"queries": [{"id": "x", "table": "t", "limit": 0}]})
