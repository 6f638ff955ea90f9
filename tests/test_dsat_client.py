"""Tests for the DSAT API client."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from dsat_mcp.data.config import DSATConfig
from dsat_mcp.data.dsat_client import DSATClient, padded_route_code
from dsat_mcp.data.token import generate_token
from dsat_mcp.models.live import CongestionLevel, VehicleStatus


def create_route_info_response() -> dict:
    """Create a sample routestation/bus response for testing."""
    return {
        "data": {
            "routeInfo": [
                {
                    "staCode": "M228",
                    "staName": "關閘",
                    "laneName": "A",
                    "busInfo": [
                        {
                            "busPlate": "MM-12-34",
                            "status": "1",
                            "speed": "0",
                            "passengerFlow": "12",
                            "isFacilities": "1",
                            "busType": "1",
                        }
                    ],
                },
                {"staCode": "M26/4", "staName": "美副將大馬路", "busInfo": []},
                {
                    "staCode": "T304/1",
                    "staName": "提督/雅廉訪",
                    "busInfo": [{"busPlate": "MN-56-78", "status": "0", "speed": "23.5"}],
                },
            ]
        },
        "header": "000",
    }


@pytest.fixture
def config() -> DSATConfig:
    """Create a test config."""
    return DSATConfig(DSAT_BASE_URL="https://example.com/macauweb")


def mock_http(json_body=None) -> tuple[MagicMock, AsyncMock]:
    mock_response = MagicMock()
    mock_response.json.return_value = json_body
    mock_client = AsyncMock()
    mock_client.post = AsyncMock(return_value=mock_response)
    return mock_response, mock_client


def test_padded_route_code():
    assert padded_route_code("N2") == "000N2"
    assert padded_route_code("33") == "00033"
    assert padded_route_code("701XS") == "701XS"


@pytest.mark.asyncio
async def test_fetch_live_snapshot_parses_vehicles(config: DSATConfig):
    """Test parsing stops and buses from the live endpoint."""
    _, mock_client = mock_http(create_route_info_response())

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = mock_client

        async with DSATClient(config) as client:
            snapshot = await client.fetch_live_snapshot("33", 0, route_type="2")

    assert snapshot.route == "33"
    assert snapshot.direction == 0
    assert snapshot.variant == "routeType=2"
    assert snapshot.station_codes == ["M228", "M26/4", "T304/1"]
    assert snapshot.active_vehicle_count == 2

    at_stop = snapshot.stops[0].vehicles[0]
    assert at_stop.plate == "MM-12-34"
    assert at_stop.status == VehicleStatus.AT_STOP
    assert at_stop.passenger_flow == 12
    assert at_stop.accessible is True
    assert at_stop.bus_type == "1"

    moving = snapshot.stops[2].vehicles[0]
    assert moving.status == VehicleStatus.IN_TRANSIT
    assert moving.speed == 23.5
    assert moving.accessible is False

    assert snapshot.vehicle_positions() == [(0, at_stop), (2, moving)]


@pytest.mark.asyncio
async def test_live_request_is_signed_in_endpoint_order(config: DSATConfig):
    """Body keeps the endpoint's parameter order and the token signs that body."""
    _, mock_client = mock_http(create_route_info_response())
    moment = datetime(2024, 3, 15, 10, 45)

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = mock_client

        async with DSATClient(config, clock=lambda: moment) as client:
            await client.fetch_live_snapshot("33", 1, route_type="0")

    call = mock_client.post.call_args
    assert call.args[0] == "https://example.com/macauweb/routestation/bus"
    assert call.kwargs["content"] == (
        "action=dy&routeName=33&dir=1&lang=zh-tw&routeType=0&device=web"
    )
    expected_token = generate_token(
        [
            ("action", "dy"),
            ("routeName", "33"),
            ("dir", "1"),
            ("lang", "zh-tw"),
            ("routeType", "0"),
            ("device", "web"),
        ],
        lambda: moment,
    )
    assert call.kwargs["headers"]["token"] == expected_token
    assert call.kwargs["headers"]["Content-Type"].startswith("application/x-www-form-urlencoded")


@pytest.mark.asyncio
async def test_client_sets_portal_headers(config: DSATConfig):
    """Referer and Origin must match the portal or upstream rejects the call."""
    _, mock_client = mock_http({"data": {"routeInfo": []}})

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = mock_client

        async with DSATClient(config) as client:
            await client.fetch_route_stops("33", 0)

        call_kwargs = mock_client_class.call_args.kwargs
        assert call_kwargs["headers"]["Referer"] == config.referer
        assert call_kwargs["headers"]["Origin"] == config.origin
        assert call_kwargs["timeout"] == config.request_timeout_seconds


@pytest.mark.asyncio
async def test_fetch_route_stops_params(config: DSATConfig):
    _, mock_client = mock_http(create_route_info_response())

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = mock_client

        async with DSATClient(config) as client:
            snapshot = await client.fetch_route_stops("N2", 1)

    call = mock_client.post.call_args
    assert call.args[0] == "https://example.com/macauweb/getRouteData.html"
    assert call.kwargs["content"] == "routeName=N2&dir=1&lang=zh-tw&device=web"
    assert [stop.name for stop in snapshot.stops] == ["關閘", "美副將大馬路", "提督/雅廉訪"]


@pytest.mark.asyncio
async def test_fetch_station_locations(config: DSATConfig):
    body = {
        "data": {
            "stationInfoList": [
                {"stationCode": "M228", "latitude": "22.2153", "longitude": "113.5495"},
                {"stationCode": "M26/4", "latitude": "", "longitude": ""},
            ]
        }
    }
    _, mock_client = mock_http(body)

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = mock_client

        async with DSATClient(config) as client:
            locations = await client.fetch_station_locations("N2", 0)

    assert mock_client.post.call_args.kwargs["content"] == (
        "routeName=N2&dir=0&lang=zh-tw&routeCode=000N2"
    )
    assert locations[0].lat == pytest.approx(22.2153)
    assert locations[0].lon == pytest.approx(113.5495)
    assert locations[1].lat is None


@pytest.mark.asyncio
async def test_fetch_traffic(config: DSATConfig):
    body = {
        "data": [
            {"stationCode": "M228", "traffic": "1"},
            {"stationCode": "M26", "traffic": 3},
            {"stationCode": "T304", "traffic": 7},
            {"stationCode": "T305", "traffic": None},
        ]
    }
    _, mock_client = mock_http(body)

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = mock_client

        async with DSATClient(config) as client:
            segments = await client.fetch_traffic("33", 0)

    assert [s.level for s in segments] == [
        CongestionLevel.SMOOTH,
        CongestionLevel.CONGESTED,
        CongestionLevel.SEVERE,
        CongestionLevel.UNKNOWN,
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {},
        {"data": None},
        {"data": {"routeInfo": "nope"}},
        {"data": {"routeInfo": [{"staName": "no code"}, {"staCode": ""}]}},
        ["not", "a", "dict"],
    ],
)
async def test_malformed_payload_is_empty(config: DSATConfig, body):
    """Malformed or empty payloads mean no data, not an exception."""
    _, mock_client = mock_http(body)

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = mock_client

        async with DSATClient(config) as client:
            snapshot = await client.fetch_live_snapshot("33", 0, route_type="0")

    assert snapshot.stops == []
    assert snapshot.active_vehicle_count == 0


@pytest.mark.asyncio
async def test_non_json_payload_is_empty(config: DSATConfig):
    mock_response, mock_client = mock_http()
    mock_response.json.side_effect = ValueError("not json")

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = mock_client

        async with DSATClient(config) as client:
            snapshot = await client.fetch_route_stops("33", 0)

    assert snapshot.stops == []


@pytest.mark.asyncio
async def test_rejection_raises_status_error(config: DSATConfig):
    """Non-2xx responses surface as httpx.HTTPStatusError."""
    mock_response, mock_client = mock_http()
    mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
        "forbidden", request=MagicMock(), response=MagicMock(status_code=403)
    )

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = mock_client

        async with DSATClient(config) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.fetch_route_stops("33", 0)


@pytest.mark.asyncio
async def test_client_requires_async_context(config: DSATConfig):
    """Test that client methods fail without async context."""
    client = DSATClient(config)

    with pytest.raises(RuntimeError, match="Client not initialized"):
        await client.fetch_route_stops("33", 0)


@pytest.mark.asyncio
async def test_unexpected_vehicle_values_keep_stop_sequence(config: DSATConfig):
    """Odd bus fields never remove a stop from the ordered sequence."""
    body = {
        "data": {
            "routeInfo": [
                {"staCode": "A", "busInfo": []},
                {
                    "staCode": "B",
                    "busInfo": [
                        {"busPlate": "MA-1", "status": "2"},
                        {"status": "1"},
                        {"busPlate": "MA-3", "status": None},
                    ],
                },
                {"staCode": "C", "busInfo": [{"busPlate": "MA-4", "status": 1}]},
            ]
        }
    }
    _, mock_client = mock_http(body)

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = mock_client

        async with DSATClient(config) as client:
            snapshot = await client.fetch_live_snapshot("33", 0, route_type="0")

    assert snapshot.station_codes == ["A", "B", "C"]
    # the bus without a plate is dropped, its stop stays
    assert [v.plate for v in snapshot.stops[1].vehicles] == ["MA-1", "MA-3"]
    assert all(v.status == VehicleStatus.IN_TRANSIT for v in snapshot.stops[1].vehicles)
    assert snapshot.stops[2].vehicles[0].status == VehicleStatus.AT_STOP
