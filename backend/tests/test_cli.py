"""Tests for FleetWatch CLI commands."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from fleetwatch.cli import _parse_duration, app
from fleetwatch.config import settings
from fleetwatch.errors import UpstreamConnectionError
from fleetwatch.modules.sample_data import load_sample_data

runner = CliRunner()


@pytest.fixture
def demo_service(service):
    load_sample_data(service.store)
    return service


# ---------------------------------------------------------------------------
# seed / status
# ---------------------------------------------------------------------------


def test_seed(service):
    with patch("fleetwatch.cli._service", return_value=service):
        result = runner.invoke(app, ["seed", "--seed", "7"])
    assert result.exit_code == 0
    assert "5 vessels" in result.output
    assert len(service.list_vessels()) == 5


def test_status(demo_service):
    with patch("fleetwatch.cli._service", return_value=demo_service):
        result = runner.invoke(app, ["status", "--demo"])
    assert result.exit_code == 0
    assert "Vessels: 5" in result.output
    assert "Zones: 3" in result.output
    assert "Active alerts: 2" in result.output
    assert "Reference ports: 2" in result.output


def test_status_empty_store(service):
    with patch("fleetwatch.cli._service", return_value=service):
        result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "Vessels: 0" in result.output
    assert "Last update" not in result.output


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


def test_search_by_name(demo_service):
    with patch("fleetwatch.cli._service", return_value=demo_service):
        result = runner.invoke(app, ["search", "gulf"])
    assert result.exit_code == 0
    assert "Gulf Princess" in result.output
    assert "Dubai Trader" not in result.output


def test_search_no_match(demo_service):
    with patch("fleetwatch.cli._service", return_value=demo_service):
        result = runner.invoke(app, ["search", "nonexistent"])
    assert result.exit_code == 0
    assert "No vessels found" in result.output


# ---------------------------------------------------------------------------
# eta / history
# ---------------------------------------------------------------------------


def test_eta_single_vessel(demo_service):
    vessel = demo_service.store.get_by_station_id("636012345")
    with patch("fleetwatch.cli._service", return_value=demo_service):
        result = runner.invoke(app, ["eta", str(vessel.vessel_id)])
    assert result.exit_code == 0
    assert "ETA predictions" in result.output


def test_eta_unavailable_exits_1(demo_service):
    with patch("fleetwatch.cli._service", return_value=demo_service):
        result = runner.invoke(app, ["eta", "999"])
    assert result.exit_code == 1
    assert "No ETA available" in result.output


def test_eta_all_without_predictions(service):
    with patch("fleetwatch.cli._service", return_value=service):
        result = runner.invoke(app, ["eta"])
    assert result.exit_code == 0
    assert "No predictions available" in result.output


def test_history(demo_service):
    vessel = demo_service.store.get_by_station_id("636012345")
    with patch("fleetwatch.cli._service", return_value=demo_service):
        result = runner.invoke(app, ["history", str(vessel.vessel_id), "--days", "1"])
    assert result.exit_code == 0
    assert "Dubai Trader" in result.output
    assert "5 points" in result.output
    assert "Fuel efficiency score" in result.output


def test_history_not_enough_data(service):
    with patch("fleetwatch.cli._service", return_value=service):
        result = runner.invoke(app, ["history", "1"])
    assert result.exit_code == 1
    assert "Not enough history" in result.output


# ---------------------------------------------------------------------------
# stream
# ---------------------------------------------------------------------------


def test_stream_without_api_key(service):
    with patch("fleetwatch.cli._service", return_value=service), \
            patch.object(settings, "AISSTREAM_API_KEY", None):
        result = runner.invoke(app, ["stream", "--stream-time", "10s"])
    assert result.exit_code == 1
    assert "AISSTREAM_API_KEY" in result.output


def test_stream_prints_summary(service):
    feed = MagicMock()
    feed.run = AsyncMock(return_value={
        "messages_received": 1200, "position_reports": 1000, "static_data_msgs": 150,
        "reports_applied": 1100, "dropped": 50, "reconnects": 1, "stations_seen": 42,
    })
    with patch("fleetwatch.cli._service", return_value=service), \
            patch.object(service, "make_feed", return_value=feed):
        result = runner.invoke(app, ["stream", "--stream-time", "2m"])
    assert result.exit_code == 0
    feed.run.assert_awaited_once_with(duration_seconds=120)
    assert "1,200" in result.output


def test_stream_failure_exits_2(service):
    feed = MagicMock()
    feed.run = AsyncMock(side_effect=UpstreamConnectionError("unreachable after 5 reconnect attempts"))
    with patch("fleetwatch.cli._service", return_value=service), \
            patch.object(service, "make_feed", return_value=feed):
        result = runner.invoke(app, ["stream"])
    assert result.exit_code == 2
    assert "Feed failed" in result.output


@pytest.mark.parametrize("raw,seconds", [("30s", 30), ("5m", 300), ("1h", 3600), ("0", 0), ("45", 45), ("soon", 300)])
def test_parse_duration(raw, seconds):
    assert _parse_duration(raw) == seconds
