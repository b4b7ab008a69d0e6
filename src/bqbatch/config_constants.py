from enum import Enum


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

class LogFormat(str, Enum):
    JSON = "json"
    CONSOLE = "console"

# -------------------------
# Remote Service Constants
# -------------------------

# BigQuery job states as reported by QueryJob.state
BIGQUERY_JOB_STATE_PENDING = "PENDING"
BIGQUERY_JOB_STATE_RUNNING = "RUNNING"
BIGQUERY_JOB_STATE_DONE = "DONE"

# Prefix for BigQuery job ids created by this library
DEFAULT_JOB_ID_PREFIX = "bqbatch_"

# Maximum characters of SQL included in log records
LOG_SQL_PREVIEW_CHARS = 200
