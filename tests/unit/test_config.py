import pytest
from pydantic import ValidationError

from bqbatch.config import ExecutorConfig, RetryPolicyConfig, get_settings
from bqbatch.config_constants import LogLevel


## test for import and loading settings
def test_get_settings():
    settings = get_settings()
    assert settings is not None
    assert settings.executor.poll_interval_seconds > 0
    assert settings.executor.retry.max_attempts >= 1
    assert settings.app.log_level in LogLevel

## test for singleton
def test_get_settings_singleton():
    settings1 = get_settings()
    settings2 = get_settings()
    assert settings1 is settings2


def test_executor_defaults_are_unbounded_without_retry():
    config = ExecutorConfig()
    assert config.max_concurrency is None
    assert config.per_query_timeout_seconds is None
    assert config.retry.max_attempts == 1
    assert config.retry.retry_on_quota is False


@pytest.mark.parametrize("field,value", [
    ("max_concurrency", 0),
    ("max_concurrency", -2),
    ("per_query_timeout_seconds", 0),
    ("poll_interval_seconds", 0),
])
def test_executor_rejects_non_positive_values(field, value):
    with pytest.raises(ValidationError):
        ExecutorConfig(**{field: value})


def test_retry_policy_requires_at_least_one_attempt():
    with pytest.raises(ValidationError):
        RetryPolicyConfig(max_attempts=0)


def test_nested_environment_variables(monkeypatch):
    monkeypatch.setenv("EXECUTOR__MAX_CONCURRENCY", "4")
    monkeypatch.setenv("EXECUTOR__RETRY__MAX_ATTEMPTS", "3")
    monkeypatch.setenv("BIGQUERY__PROJECT_ID", "analytics-prod")

    settings = get_settings.__wrapped__()

    assert settings.executor.max_concurrency == 4
    assert settings.executor.retry.max_attempts == 3
    assert settings.bigquery.project_id == "analytics-prod"
