import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from dsat_mcp.data.config import DSATConfig
from dsat_mcp.data.token import generate_token
from dsat_mcp.models.live import LiveSnapshot, LiveStop, StationLocation, TrafficSegment

logger = logging.getLogger(__name__)


def padded_route_code(route: str) -> str:
    """Route code used by the location endpoint, e.g. "N2" -> "000N2"."""
    return route.strip().rjust(5, "0")


class DSATClient:
    """Async HTTP client for the DSAT bus portal endpoints.

    Every request is a form-encoded POST signed with a fresh token.

    Usage:
        async with DSATClient(config) as client:
            snapshot = await client.fetch_live_snapshot("33", 0, route_type="2")
    """

    def __init__(self, config: DSATConfig, clock: Callable[[], datetime] | None = None):
        """Initialize the client.

        Args:
            config: Configuration with base URL, headers and timeout.
            clock: Time source for token generation (defaults to local time).
        """
        self._config = config
        self._clock = clock
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "DSATClient":
        """Enter async context - create HTTP client."""
        headers = {
            "Referer": self._config.referer,
            "Origin": self._config.origin,
            "User-Agent": self._config.user_agent,
            "X-Requested-With": "XMLHttpRequest",
        }
        self._client = httpx.AsyncClient(
            headers=headers, timeout=self._config.request_timeout_seconds
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context - close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _post(self, url: str, params: list[tuple[str, str]]) -> dict[str, Any]:
        """POST signed form parameters and return the decoded JSON body.

        Raises:
            RuntimeError: If client not initialized.
            httpx.HTTPError: If the request fails or returns non-2xx.
        """
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        headers = {
            "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
            "token": generate_token(params, self._clock),
        }
        response = await self._client.post(url, content=urlencode(params), headers=headers)
        response.raise_for_status()

        try:
            body = response.json()
        except ValueError:
            logger.debug(f"Non-JSON response from {url}")
            return {}
        return body if isinstance(body, dict) else {}

    def _route_params(self, route: str, direction: int) -> list[tuple[str, str]]:
        return [
            ("routeName", route),
            ("dir", str(direction)),
            ("lang", self._config.lang),
            ("device", self._config.device),
        ]

    async def fetch_route_stops(self, route: str, direction: int) -> LiveSnapshot:
        """Fetch the stop sequence of a route-direction.

        Returns:
            LiveSnapshot whose stops carry station codes and names. Empty if
            the route has no such direction.
        """
        body = await self._post(self._config.route_data_url, self._route_params(route, direction))
        return LiveSnapshot(route=route, direction=direction, stops=_parse_route_info(body))

    async def fetch_live_snapshot(self, route: str, direction: int, route_type: str) -> LiveSnapshot:
        """Fetch stops with their currently attached vehicles.

        Args:
            route: Route number, e.g. "33".
            direction: 0 or 1.
            route_type: Value of the undocumented routeType field.
        """
        params = [
            ("action", "dy"),
            ("routeName", route),
            ("dir", str(direction)),
            ("lang", self._config.lang),
            ("routeType", route_type),
            ("device", self._config.device),
        ]
        body = await self._post(self._config.live_buses_url, params)
        return LiveSnapshot(
            route=route,
            direction=direction,
            stops=_parse_route_info(body),
            variant=f"routeType={route_type}",
        )

    async def fetch_station_locations(self, route: str, direction: int) -> list[StationLocation]:
        """Fetch station coordinates along a route-direction."""
        params = [
            ("routeName", route),
            ("dir", str(direction)),
            ("lang", self._config.lang),
            ("routeCode", padded_route_code(route)),
        ]
        body = await self._post(self._config.station_location_url, params)
        data = body.get("data")
        items = data.get("stationInfoList") if isinstance(data, dict) else None
        return _parse_items(items, StationLocation)

    async def fetch_traffic(self, route: str, direction: int) -> list[TrafficSegment]:
        """Fetch per-segment congestion levels along a route-direction."""
        body = await self._post(self._config.traffic_url, self._route_params(route, direction))
        data = body.get("data")
        if isinstance(data, dict):
            data = data.get("routeTraffic")
        return _parse_items(data, TrafficSegment)


def _parse_route_info(body: dict[str, Any]) -> list[LiveStop]:
    """Parse ``data.routeInfo``; anything malformed yields no stops."""
    data = body.get("data")
    items = data.get("routeInfo") if isinstance(data, dict) else None
    return [stop for stop in _parse_items(items, LiveStop) if stop.station_code]


def _parse_items(items: Any, model: type) -> list:
    if not isinstance(items, list):
        return []

    parsed = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as e:
            logger.debug(f"Skipping malformed {model.__name__}: {e}")
    return parsed
