"""
Utility for loading batch definitions from YAML files.

A batch definition lists the queries of one batch, either as raw SQL or as
builder clauses:

    queries:
      - id: top_customers
        table: orders
        select: [customer_id, "SUM(amount) AS total"]
        where: ["order_date >= '2024-01-01'"]
        group_by: [customer_id]
        order_by:
          - {field: total, direction: DESC}
        limit: 10
      - id: heartbeat
        sql: SELECT 1 AS ok
"""

from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from bqbatch.domain.errors import ConfigurationError
from bqbatch.domain.requests import ExecutionRequest
from bqbatch.services.query_builder import QueryBuilder
from bqbatch.utils.logging import get_module_logger


logger = get_module_logger()

_BUILDER_KEYS = {"table", "select", "where", "group_by", "order_by", "limit"}


def _as_list(value: Any, key: str, query_id: str) -> List[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        return [value]
    raise ConfigurationError(
        f"'{key}' of query '{query_id}' must be a string or a list",
        details={"query_id": query_id, "key": key},
    )


def _apply_order_by(builder: QueryBuilder, entries: List[Any], query_id: str) -> None:
    for entry in entries:
        if isinstance(entry, dict):
            builder.order_by(entry.get("field"), entry.get("direction", "ASC"))
        elif isinstance(entry, str):
            # "total DESC" or "total"
            parts = entry.rsplit(None, 1)
            if len(parts) == 2 and parts[1].upper() in ("ASC", "DESC"):
                builder.order_by(parts[0], parts[1])
            else:
                builder.order_by(entry)
        else:
            raise ConfigurationError(
                f"Invalid order_by entry in query '{query_id}': {entry!r}",
                details={"query_id": query_id},
            )


def _build_request(entry: Dict[str, Any]) -> ExecutionRequest:
    query_id = entry.get("id")
    if not isinstance(query_id, str) or not query_id.strip():
        raise ConfigurationError("Every query needs a non-empty 'id'", details={"entry": entry})

    sql = entry.get("sql")
    has_builder_keys = bool(_BUILDER_KEYS & entry.keys())

    if sql is not None:
        if has_builder_keys:
            raise ConfigurationError(
                f"Query '{query_id}' mixes raw 'sql' with builder keys",
                details={"query_id": query_id},
            )
        if not isinstance(sql, str) or not sql.strip():
            raise ConfigurationError(f"'sql' of query '{query_id}' is empty", details={"query_id": query_id})
        return ExecutionRequest(request_id=query_id, sql=sql.strip())

    if "table" not in entry:
        raise ConfigurationError(
            f"Query '{query_id}' needs either 'sql' or 'table'",
            details={"query_id": query_id},
        )

    builder = QueryBuilder(entry["table"])
    if "select" in entry:
        builder.select_fields(*_as_list(entry["select"], "select", query_id))
    for predicate in _as_list(entry.get("where", []), "where", query_id):
        builder.where_condition(predicate)
    if "group_by" in entry:
        builder.group_by(*_as_list(entry["group_by"], "group_by", query_id))
    _apply_order_by(builder, _as_list(entry.get("order_by", []), "order_by", query_id), query_id)
    if "limit" in entry:
        builder.limit(entry["limit"])

    return builder.to_request(query_id)


def parse_batch_definition(yaml_content: Dict[str, Any]) -> List[ExecutionRequest]:
    """
    Build execution requests from a parsed batch definition.

    Args:
        yaml_content: Parsed YAML dictionary with a top-level "queries" list

    Returns:
        One ExecutionRequest per query, in file order

    Raises:
        ConfigurationError: If the definition is malformed
    """
    if not isinstance(yaml_content, dict) or not isinstance(yaml_content.get("queries"), list):
        raise ConfigurationError("Batch definition must contain a 'queries' list")

    requests = []
    for entry in yaml_content["queries"]:
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Invalid query entry: {entry!r}")
        requests.append(_build_request(entry))

    logger.info("Parsed batch definition", query_count=len(requests))
    return requests


def load_batch_file(path: Union[str, Path]) -> List[ExecutionRequest]:
    """
    Load a batch definition from a YAML file.

    Raises:
        ConfigurationError: If the file cannot be read, parsed, or is malformed
    """
    file_path = Path(path)
    logger.info("Loading batch definition", file_path=str(file_path))

    try:
        content = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read batch file {file_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in batch file {file_path}: {e}") from e

    return parse_batch_definition(content)
