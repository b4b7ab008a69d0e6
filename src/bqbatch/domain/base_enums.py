from enum import Enum


class ClauseKind(str, Enum):
    """Structural fragments of a query, in rendering order."""
    SELECT = "select"
    WHERE = "where"
    GROUP_BY = "group_by"
    ORDER_BY = "order_by"
    LIMIT = "limit"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class ErrorKind(str, Enum):
    """Classification of a failed query."""
    SYNTAX = "syntax"
    PERMISSION = "permission"
    QUOTA = "quota"
    TRANSIENT = "transient"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class JobStatus(str, Enum):
    """State of a job on the remote execution service."""
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
