"""Unit tests for the service endpoints and health aggregation."""

from typing import Any

import pytest
from pytest_mock import MockerFixture

from src.api.routes.service import (
    DATABASE_FAILURE_MESSAGE,
    HealthAggregator,
    get_health_probe,
    get_uptime_seconds,
)
from src.core.config import HealthConfig, Settings


@pytest.mark.unit
class TestHealthAggregator:
    """Snapshot computation."""

    async def test_healthy_snapshot(
        self, mocker: MockerFixture, development_settings: Settings
    ) -> None:
        """Test a successful probe yields status ok and no error."""
        # Arrange
        probe = mocker.AsyncMock(return_value=(True, None))
        aggregator = HealthAggregator(development_settings, probe)

        # Act
        snapshot = await aggregator.snapshot()

        # Assert
        probe.assert_awaited_once()
        assert snapshot.status == "ok"
        assert snapshot.checks == {"api": "ok", "database": "ok"}
        assert snapshot.error is None
        assert snapshot.environment == "development"
        assert snapshot.version == "1.0.0"
        assert snapshot.uptime >= 0

    async def test_failed_probe_degrades_without_leaking(
        self,
        mocker: MockerFixture,
        production_settings: Settings,
        log_records: list[dict[str, Any]],
    ) -> None:
        """Test the probe error is logged but never returned to the caller."""
        # Arrange
        detail = 'password authentication failed for user "optica"'
        probe = mocker.AsyncMock(return_value=(False, detail))
        aggregator = HealthAggregator(production_settings, probe)

        # Act
        snapshot = await aggregator.snapshot()

        # Assert
        assert snapshot.status == "degraded"
        assert snapshot.checks == {"api": "ok", "database": "error"}
        assert snapshot.error == DATABASE_FAILURE_MESSAGE
        assert "optica" not in snapshot.model_dump_json()
        record = next(r for r in log_records if r["level"].name == "ERROR")
        assert detail in record["message"]

    async def test_raising_probe_is_a_failure(
        self, mocker: MockerFixture, development_settings: Settings
    ) -> None:
        """Test an exception from the probe is reported as degraded."""
        probe = mocker.AsyncMock(side_effect=ConnectionResetError("reset by peer"))
        aggregator = HealthAggregator(development_settings, probe)

        snapshot = await aggregator.snapshot()

        assert snapshot.status == "degraded"
        assert snapshot.checks["database"] == "error"

    async def test_every_call_probes_again(
        self, mocker: MockerFixture, development_settings: Settings
    ) -> None:
        """Test snapshots are never cached between calls."""
        # Arrange
        probe = mocker.AsyncMock(side_effect=[(True, None), (False, "down")])
        aggregator = HealthAggregator(development_settings, probe)

        # Act
        first = await aggregator.snapshot()
        second = await aggregator.snapshot()

        # Assert
        assert probe.await_count == 2
        assert first.status == "ok"
        assert second.status == "degraded"

    async def test_repeated_snapshots_agree(
        self, mocker: MockerFixture, development_settings: Settings
    ) -> None:
        """Test unchanged dependencies give identical checks."""
        probe = mocker.AsyncMock(return_value=(True, None))
        aggregator = HealthAggregator(development_settings, probe)

        first = await aggregator.snapshot()
        second = await aggregator.snapshot()

        assert first.checks == second.checks
        assert first.status == second.status


@pytest.mark.unit
class TestHealthDependencies:
    """Dependency providers."""

    async def test_probe_uses_configured_timeout(self, mocker: MockerFixture) -> None:
        """Test the probe is bound to the configured timeout."""
        # Arrange
        check = mocker.patch(
            "src.api.routes.service.check_database_connection",
            return_value=(True, None),
        )
        settings = Settings(health_config=HealthConfig(probe_timeout_seconds=2.5))

        # Act
        result = await get_health_probe(settings)()

        # Assert
        check.assert_awaited_once_with(2.5)
        assert result == (True, None)

    def test_uptime_is_monotonic(self) -> None:
        """Test uptime never goes backwards."""
        first = get_uptime_seconds()
        second = get_uptime_seconds()

        assert 0 <= first <= second
