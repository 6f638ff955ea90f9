"""Offline pipeline that scrapes every route into a stop/route graph."""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

import httpx

from dsat_mcp.data.config import DSATConfig
from dsat_mcp.data.dsat_client import DSATClient
from dsat_mcp.matching.normalizers import base_station_code, normalize_station_code
from dsat_mcp.models.graph import GraphMeta, NetworkGraph, RouteDirection, Stop, route_key
from dsat_mcp.models.live import LiveSnapshot, StationLocation

logger = logging.getLogger(__name__)

DIRECTIONS = (0, 1)


def add_snapshot(graph: NetworkGraph, snapshot: LiveSnapshot) -> bool:
    """Fold one route-direction stop sequence into the graph.

    - The route-direction is created on first sight with an empty sequence
    - Stops are created with the first name seen for their code
    - A stop's serving routes behave as a set; a route's stops as a list
      (loop routes may visit a stop twice)

    Returns:
        True if the snapshot contributed stops, False if it was empty.
    """
    if not snapshot.stops:
        return False

    key = route_key(snapshot.route, snapshot.direction)
    route = graph.routes.get(key)
    if route is None:
        route = RouteDirection(
            id=key, base_route=snapshot.route, direction=snapshot.direction, stops=[]
        )
        graph.routes[key] = route

    for live_stop in snapshot.stops:
        code = live_stop.station_code
        stop = graph.stops.get(code)
        if stop is None:
            stop = Stop(code=code, name=live_stop.name or code)
            graph.stops[code] = stop
        stop.add_route(key)
        route.stops.append(code)

    return True


def refresh_meta(graph: NetworkGraph, source: str) -> GraphMeta:
    """Recompute the metadata block from the graph contents."""
    graph.meta = GraphMeta(
        generated_at=datetime.now(UTC),
        source=source,
        stop_count=len(graph.stops),
        route_count=len(graph.routes),
    )
    return graph.meta


def merge_reference_stops(graph: NetworkGraph, records: Iterable[Mapping[str, Any]]) -> int:
    """Attach alias codes and missing coordinates from a reference stop list.

    Records follow the government stop list layout: a top-level ``code``
    (or ``raw.P_ALIAS``) such as "T304_1", an optional ``raw.ALIAS`` base
    code, and ``lat``/``lon``.

    Returns:
        Number of graph stops updated.
    """
    by_normalized = {normalize_station_code(code): stop for code, stop in graph.stops.items()}
    updated = 0

    for record in records:
        raw = record.get("raw") or {}
        code = record.get("code") or raw.get("P_ALIAS")
        if not code:
            continue
        stop = by_normalized.get(normalize_station_code(code))
        if stop is None:
            continue

        changed = False
        alias = raw.get("ALIAS")
        if alias and stop.alias is None and normalize_station_code(alias) != base_station_code(stop.code):
            stop.alias = alias
            changed = True
        lat, lon = record.get("lat"), record.get("lon")
        if not stop.has_coordinates and lat is not None and lon is not None:
            stop.lat, stop.lon = float(lat), float(lon)
            changed = True
        if changed:
            updated += 1

    logger.info(f"Reference data updated {updated} stops")
    return updated


def apply_locations(graph: NetworkGraph, locations: Iterable[StationLocation]) -> int:
    """Write coordinates from the location endpoint onto matching graph stops.

    A location matches every graph stop whose code equals it after
    normalization, whose code is a suffixed form of it ("T304" -> "T304/1"),
    or whose alias equals it.

    Returns:
        Number of stops whose coordinates changed.
    """
    updated = 0
    for location in locations:
        if location.lat is None or location.lon is None:
            continue
        api_code = normalize_station_code(location.station_code)
        for stop in graph.stops.values():
            code = normalize_station_code(stop.code)
            exact = code == api_code
            suffixed = code.startswith(api_code + "/")
            alias = stop.alias is not None and normalize_station_code(stop.alias) == api_code
            if not (exact or suffixed or alias):
                continue
            if stop.lat == location.lat and stop.lon == location.lon:
                continue
            stop.lat, stop.lon = location.lat, location.lon
            updated += 1
    return updated


class GraphBuilder:
    """Build the static graph by scraping each route, one at a time.

    Usage:
        async with DSATClient(config) as client:
            graph = await GraphBuilder(client, config).build(config.routes)
    """

    def __init__(self, client: DSATClient, config: DSATConfig):
        self._client = client
        self._config = config

    async def _pause(self) -> None:
        await asyncio.sleep(self._config.request_delay_seconds)

    async def _fetch_stops(self, route: str, direction: int) -> LiveSnapshot | None:
        """Fetch one direction; failures are logged and reported as None."""
        try:
            return await self._client.fetch_route_stops(route, direction)
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Route {route} dir {direction} rejected with status {e.response.status_code}"
            )
        except Exception as e:
            logger.warning(f"Failed to fetch route {route} dir {direction}: {e}")
        return None

    async def build(self, routes: Iterable[str]) -> NetworkGraph:
        """Scrape both directions of every route into a new graph.

        Args:
            routes: Route catalog, e.g. ["1", "1A", "33"].

        Returns:
            NetworkGraph with metadata filled in.
        """
        graph = NetworkGraph()
        routes = list(routes)
        logger.info(f"Building graph for {len(routes)} routes")

        for route in routes:
            for direction in DIRECTIONS:
                snapshot = await self._fetch_stops(route, direction)
                await self._pause()
                # many routes only run in one direction
                if snapshot is not None and add_snapshot(graph, snapshot):
                    logger.info(
                        f"  Route {route} dir {direction}: {len(snapshot.stops)} stops"
                    )

        meta = refresh_meta(graph, self._config.route_data_url)
        logger.info(f"Graph built: {meta.stop_count:,} stops, {meta.route_count:,} route directions")
        return graph

    async def enrich_coordinates(self, graph: NetworkGraph) -> int:
        """Fill stop coordinates from the station location endpoint.

        Returns:
            Number of stop coordinates updated.
        """
        updated = 0
        for route in list(graph.routes.values()):
            try:
                locations = await self._client.fetch_station_locations(
                    route.base_route, route.direction
                )
            except Exception as e:
                logger.warning(f"Failed to fetch locations for {route.id}: {e}")
                locations = []
            await self._pause()
            updated += apply_locations(graph, locations)

        missing = sum(1 for stop in graph.stops.values() if not stop.has_coordinates)
        logger.info(f"Updated {updated} coordinates ({missing} stops still without coordinates)")
        refresh_meta(graph, self._config.route_data_url)
        return updated


def check_consistency(graph: NetworkGraph) -> list[str]:
    """List violations of the stop <-> route-direction cross references.

    Returns:
        Human-readable problems; empty when every stop's serving routes are
        exactly the route-directions whose sequence contains it.
    """
    problems: list[str] = []
    for code, stop in graph.stops.items():
        for key in stop.routes:
            route = graph.routes.get(key)
            if route is None or code not in route.stops:
                problems.append(f"stop {code} lists {key} which does not visit it")
    for key, route in graph.routes.items():
        for code in route.stops:
            stop = graph.stops.get(code)
            if stop is None or key not in stop.routes:
                problems.append(f"{key} visits {code} which does not list it")
    return problems
