"""Per-stop arrival predictions for every route serving a stop.

One poll cycle: resolve the stop in the static graph, then for each route
serving it (concurrently) select a live snapshot, fetch traffic, attach
graph coordinates and predict. Failures degrade a single route to
"unknown"; nothing is raised to the caller.

The route view does the same for one route-direction and predicts for
every stop along it.
"""

import asyncio
import logging
from datetime import UTC, datetime

import httpx

from dsat_mcp.data.config import DSATConfig, get_config
from dsat_mcp.data.dsat_client import DSATClient
from dsat_mcp.data.graph_store import get_graph
from dsat_mcp.matching.models import MatchType
from dsat_mcp.matching.station_resolver import StationResolver
from dsat_mcp.models.graph import NetworkGraph
from dsat_mcp.models.live import LiveSnapshot, TrafficSegment
from dsat_mcp.models.responses import (
    ArrivalStatus,
    RouteArrivals,
    RouteStatusResponse,
    RouteStopStatus,
    StopArrivalsResponse,
    StopInfo,
)
from dsat_mcp.services.arrival_predictor import align_traffic, predict_arrival, predict_vehicles
from dsat_mcp.services.candidate_selector import (
    LiveCandidateSelector,
    SelectionStatus,
    strategies_from_variants,
)

logger = logging.getLogger(__name__)


def serving_routes(graph: NetworkGraph, code: str) -> list[tuple[str, int]]:
    """Base routes serving a stop with the first direction seen for each.

    Example: routes ["33_1", "33_0", "3_0"] -> [("33", 1), ("3", 0)]
    """
    seen: dict[str, int] = {}
    for route in graph.routes_for_stop(code):
        seen.setdefault(route.base_route, route.direction)
    return list(seen.items())


def attach_coordinates(snapshot: LiveSnapshot, resolver: StationResolver, graph: NetworkGraph) -> None:
    """Copy graph coordinates onto snapshot stops that have none."""
    for stop in snapshot.stops:
        if stop.has_coordinates:
            continue
        resolution = resolver.resolve(stop.station_code)
        # a base-code match may be the platform across the road
        if resolution.match_type not in (MatchType.EXACT, MatchType.ALIAS):
            continue
        graph_stop = graph.stops[resolution.code]
        if graph_stop.has_coordinates:
            stop.lat, stop.lon = graph_stop.lat, graph_stop.lon


async def _fetch_traffic(client: DSATClient, route: str, direction: int) -> list[TrafficSegment]:
    """Traffic for a route-direction; failures mean no traffic data (x1.0)."""
    try:
        return await client.fetch_traffic(route, direction)
    except httpx.HTTPStatusError as e:
        logger.warning(
            f"Traffic for route {route} dir {direction} rejected with status {e.response.status_code}"
        )
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch traffic for route {route} dir {direction}: {e!r}")
    return []


async def get_route_arrivals(
    client: DSATClient,
    selector: LiveCandidateSelector,
    graph: NetworkGraph,
    resolver: StationResolver,
    route: str,
    direction: int,
    stop_code: str,
) -> RouteArrivals:
    """Predict arrivals of one route at one stop.

    Returns:
        RouteArrivals with status NO_SERVICE/UNKNOWN when no snapshot could
        be selected.
    """
    result = await selector.select(route, direction, stop_code)
    if result.status != SelectionStatus.SELECTED:
        status = (
            ArrivalStatus.UNKNOWN
            if result.status == SelectionStatus.UNKNOWN
            else ArrivalStatus.NO_SERVICE
        )
        return RouteArrivals(route=route, status=status)

    snapshot = result.snapshot
    target_index = result.target_index
    segments = await _fetch_traffic(client, route, result.direction)
    levels = align_traffic(snapshot, segments)
    attach_coordinates(snapshot, resolver, graph)

    prediction = predict_arrival(snapshot, target_index, levels)
    last_stop = snapshot.stops[-1]

    return RouteArrivals(
        route=route,
        direction=result.direction,
        status=prediction.status,
        destination=last_stop.name or last_stop.station_code,
        target_index=target_index,
        total_stops=len(snapshot.stops),
        variant=result.strategy,
        prediction=prediction,
        vehicles=predict_vehicles(snapshot, target_index, levels),
        traffic_levels=levels,
    )


async def get_stop_arrivals(
    stop_code: str,
    graph: NetworkGraph | None = None,
    config: DSATConfig | None = None,
) -> StopArrivalsResponse:
    """Get live arrival predictions for every route serving a stop.

    Args:
        stop_code: Station code in any upstream spelling (e.g. "T304_1").
        graph: Static graph (default: the configured artifact).
        config: Configuration override.

    Returns:
        StopArrivalsResponse; status UNRESOLVED if the code matches no stop.
    """
    if config is None:
        config = get_config()
    if graph is None:
        graph = get_graph()

    fetched_at = datetime.now(UTC).isoformat()
    resolver = StationResolver.from_graph(graph)
    resolution = resolver.resolve(stop_code)
    if not resolution.resolved:
        logger.debug(f"Station {stop_code!r} not found in graph")
        return StopArrivalsResponse(
            query=stop_code, status=ArrivalStatus.UNRESOLVED, fetched_at=fetched_at
        )

    stop = graph.stops[resolution.code]
    info = StopInfo(code=stop.code, name=stop.name, lat=stop.lat, lon=stop.lon, routes=stop.routes)
    routes = serving_routes(graph, stop.code)

    async with DSATClient(config) as client:
        selector = LiveCandidateSelector(client, strategies_from_variants(config.route_type_variants))
        results = await asyncio.gather(
            *(
                get_route_arrivals(client, selector, graph, resolver, route, direction, stop.code)
                for route, direction in routes
            ),
            return_exceptions=True,
        )

    arrivals: list[RouteArrivals] = []
    for (route, _), result in zip(routes, results, strict=True):
        if isinstance(result, BaseException):
            logger.warning(f"Failed to predict route {route} at {stop.code}: {result!r}")
            result = RouteArrivals(route=route, status=ArrivalStatus.UNKNOWN)
        arrivals.append(result)

    if any(r.status in (ArrivalStatus.ACTIVE, ArrivalStatus.ARRIVING) for r in arrivals):
        overall = ArrivalStatus.ACTIVE
    elif arrivals and all(r.status == ArrivalStatus.UNKNOWN for r in arrivals):
        overall = ArrivalStatus.UNKNOWN
    elif any(r.status == ArrivalStatus.NO_APPROACHING for r in arrivals):
        overall = ArrivalStatus.NO_APPROACHING
    else:
        overall = ArrivalStatus.NO_SERVICE

    return StopArrivalsResponse(
        query=stop_code,
        status=overall,
        stop=info,
        routes=arrivals,
        fetched_at=fetched_at,
    )


async def get_route_status(
    route: str,
    direction: int,
    graph: NetworkGraph | None = None,
    config: DSATConfig | None = None,
) -> RouteStatusResponse:
    """Get the live state of a whole route-direction.

    Every stop is listed in traversal order with the buses attached to it,
    the congestion of the segment leaving it and the nearest approaching
    bus's prediction.

    Args:
        route: Route number, e.g. "33".
        direction: 0 or 1.
        graph: Static graph used for missing coordinates (default: the
            configured artifact).
        config: Configuration override.

    Returns:
        RouteStatusResponse; status NO_SERVICE or UNKNOWN with no stops when
        no live snapshot could be selected.
    """
    if config is None:
        config = get_config()
    if graph is None:
        graph = get_graph()

    fetched_at = datetime.now(UTC).isoformat()

    async with DSATClient(config) as client:
        selector = LiveCandidateSelector(client, strategies_from_variants(config.route_type_variants))
        result = await selector.select_route(route, direction)
        if result.status != SelectionStatus.SELECTED:
            status = (
                ArrivalStatus.UNKNOWN
                if result.status == SelectionStatus.UNKNOWN
                else ArrivalStatus.NO_SERVICE
            )
            return RouteStatusResponse(
                route=route, direction=direction, status=status, fetched_at=fetched_at
            )
        segments = await _fetch_traffic(client, route, direction)

    snapshot = result.snapshot
    levels = align_traffic(snapshot, segments)
    attach_coordinates(snapshot, StationResolver.from_graph(graph), graph)

    stops = [
        RouteStopStatus(
            index=index,
            code=stop.station_code,
            name=stop.name,
            lat=stop.lat,
            lon=stop.lon,
            vehicles=stop.vehicles,
            traffic_level=levels[index],
            prediction=predict_arrival(snapshot, index, levels),
        )
        for index, stop in enumerate(snapshot.stops)
    ]
    last_stop = snapshot.stops[-1]

    return RouteStatusResponse(
        route=route,
        direction=direction,
        status=ArrivalStatus.ACTIVE if snapshot.active_vehicle_count else ArrivalStatus.NO_SERVICE,
        destination=last_stop.name or last_stop.station_code,
        variant=result.strategy,
        active_vehicles=snapshot.active_vehicle_count,
        stops=stops,
        fetched_at=fetched_at,
    )
