"""Root conftest.py for the Optica API test suite.

This file contains project-wide fixtures and pytest configuration.
"""

import os
from collections.abc import Generator
from typing import Any

import pytest
from loguru import logger

from src.core.config import AlertConfig, RateLimitConfig, Settings, get_settings
from src.core.error_context import _get_sensitive_fields
from src.core.logging import _state

# Exact variable names read by Settings besides the prefixed ones
_SETTINGS_ENV_NAMES = {
    "ENVIRONMENT",
    "NODE_ENV",
    "HOST",
    "PORT",
    "ALLOWED_ORIGINS",
    "VITE_API_URL",
    "TRUST_PROXY_HEADERS",
    "DOCS_URL",
    "REDOC_URL",
    "OPENAPI_URL",
}
_SETTINGS_ENV_PREFIXES = (
    "APP_",
    "API_",
    "LOG_CONFIG__",
    "DATABASE_CONFIG__",
    "RATE_LIMIT_CONFIG__",
    "HEALTH_CONFIG__",
    "ALERT_CONFIG__",
)


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[pytest.MonkeyPatch]:
    """Remove every variable Settings reads so tests start from defaults.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Yields:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    for key in list(os.environ):
        if key.upper() in _SETTINGS_ENV_NAMES or key.upper().startswith(
            _SETTINGS_ENV_PREFIXES
        ):
            monkeypatch.delenv(key, raising=False)

    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()


@pytest.fixture(autouse=True)
def preconfigured_logging() -> Generator[None]:
    """Keep create_app from replacing the test session's log sinks."""
    previous = _state.configured
    _state.configured = True
    yield
    _state.configured = previous


@pytest.fixture
def log_records() -> Generator[list[dict[str, Any]]]:
    """Capture Loguru records emitted during the test.

    Yields:
        list[dict[str, Any]]: Raw records (message, level, extra...).
    """
    records: list[dict[str, Any]] = []
    handler_id = logger.add(
        lambda message: records.append(message.record), level="DEBUG"
    )
    yield records
    logger.remove(handler_id)


@pytest.fixture
def development_settings() -> Settings:
    """Development settings with the scheduler disabled."""
    return Settings(
        environment="development",
        alert_config=AlertConfig(enabled=False),
    )


@pytest.fixture
def production_settings() -> Settings:
    """Production settings without an explicit allow-list."""
    return Settings(
        environment="production",
        alert_config=AlertConfig(enabled=False),
    )


@pytest.fixture
def small_budget_settings() -> Settings:
    """Development settings allowing three requests per window."""
    return Settings(
        environment="development",
        rate_limit_config=RateLimitConfig(max_requests=3, window_seconds=60),
        alert_config=AlertConfig(enabled=False),
    )
