"""Tests for the MCP server, health tool and graph build command."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from dsat_mcp import __version__
from dsat_mcp.data.graph_builder import GraphBuilder
from dsat_mcp.data.graph_store import load_graph
from dsat_mcp.models.live import LiveSnapshot, LiveStop
from dsat_mcp.models.responses import (
    ArrivalPrediction,
    ArrivalStatus,
    RouteArrivals,
    StopArrivalsResponse,
    StopInfo,
)
from dsat_mcp.server import (
    format_arrivals,
    health,
    parse_routes,
    read_reference_stops,
    read_routes_file,
    run_build_graph,
)


def test_health_returns_ok_status():
    """Health check should return status ok."""
    response = health()
    assert response.status == "ok"


def test_health_returns_version():
    """Health check should return the current version."""
    response = health()
    assert response.version == __version__


def test_health_returns_timestamp():
    """Health check should return a valid ISO timestamp."""
    response = health()
    assert response.timestamp is not None
    assert "T" in response.timestamp


def test_parse_routes():
    assert parse_routes("33, 3A,,N2 ") == ["33", "3A", "N2"]


def test_read_routes_file_json(tmp_path: Path):
    path = tmp_path / "routes.json"
    path.write_text('["1", "1A", 33]', encoding="utf-8")

    assert read_routes_file(path) == ["1", "1A", "33"]


def test_read_routes_file_lines(tmp_path: Path):
    path = tmp_path / "routes.txt"
    path.write_text("# night routes\nN1A\n\nN2\n", encoding="utf-8")

    assert read_routes_file(path) == ["N1A", "N2"]


def test_read_reference_stops(tmp_path: Path):
    path = tmp_path / "stops.json"
    path.write_text(json.dumps({"stops": [{"code": "M1"}, "junk"]}), encoding="utf-8")

    assert read_reference_stops(path) == [{"code": "M1"}]


class FakeDSATClient:
    async def __aenter__(self) -> "FakeDSATClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def fetch_route_stops(self, route: str, direction: int) -> LiveSnapshot:
        if direction == 1:
            return LiveSnapshot(route=route, direction=direction)
        stops = [LiveStop(station_code=code, name=code) for code in ("M228", "T304/1")]
        return LiveSnapshot(route=route, direction=direction, stops=stops)


@pytest.mark.asyncio
async def test_run_build_graph_writes_artifact(tmp_path: Path):
    output = tmp_path / "data" / "bus_data.json"
    reference = tmp_path / "stops.json"
    reference.write_text(
        json.dumps([{"code": "T304_1", "lat": 22.19, "lon": 113.54, "raw": {"ALIAS": "T305"}}]),
        encoding="utf-8",
    )

    with (
        patch("dsat_mcp.data.dsat_client.DSATClient", return_value=FakeDSATClient()),
        patch.object(GraphBuilder, "_pause", new_callable=AsyncMock),
    ):
        await run_build_graph(output, ["33"], reference_stops=reference)

    graph = load_graph(output)
    assert set(graph.routes) == {"33_0"}
    assert graph.stops["T304/1"].alias == "T305"
    assert graph.stops["T304/1"].lat == 22.19
    assert graph.meta.stop_count == 2


def test_format_arrivals():
    response = StopArrivalsResponse(
        query="m228",
        status=ArrivalStatus.ACTIVE,
        stop=StopInfo(code="M228", name="關閘"),
        routes=[
            RouteArrivals(
                route="3",
                status=ArrivalStatus.ACTIVE,
                destination="亞馬喇前地",
                prediction=ArrivalPrediction(
                    target_index=2, status=ArrivalStatus.ACTIVE, eta_minutes=4, stops_away=2
                ),
            ),
            RouteArrivals(route="33", status=ArrivalStatus.NO_SERVICE),
        ],
        fetched_at="2024-03-15T10:45:00+00:00",
    )

    text = format_arrivals(response)

    assert text.splitlines() == [
        "M228 關閘 (2024-03-15T10:45:00+00:00)",
        "  3 to 亞馬喇前地: 4 min, 2 stops",
        "  33: no-service",
    ]


def test_format_unresolved_arrivals():
    response = StopArrivalsResponse(
        query="X999", status=ArrivalStatus.UNRESOLVED, fetched_at="2024-03-15T10:45:00+00:00"
    )

    assert format_arrivals(response) == "X999: unresolved"
