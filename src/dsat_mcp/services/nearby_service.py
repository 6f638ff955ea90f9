"""Nearby stop discovery over the static graph."""

from dsat_mcp.models.graph import NetworkGraph
from dsat_mcp.models.responses import NearbyStop, NearbyStopsResponse
from dsat_mcp.services.arrival_predictor import haversine_km


def find_nearby_stops(
    graph: NetworkGraph,
    lat: float,
    lon: float,
    limit: int = 50,
    radius_meters: float | None = None,
) -> NearbyStopsResponse:
    """Find stops closest to a coordinate.

    Stops without coordinates are skipped.

    Args:
        graph: Static network graph.
        lat, lon: Search position in degrees.
        limit: Maximum number of stops to return.
        radius_meters: Optional cut-off distance.

    Returns:
        NearbyStopsResponse sorted by distance ascending.
    """
    results: list[NearbyStop] = []
    for stop in graph.stops.values():
        if not stop.has_coordinates:
            continue
        distance = haversine_km(lat, lon, stop.lat, stop.lon) * 1000
        if radius_meters is not None and distance > radius_meters:
            continue
        base_routes = list(dict.fromkeys(route.base_route for route in graph.routes_for_stop(stop.code)))
        results.append(
            NearbyStop(
                code=stop.code,
                name=stop.name,
                lat=stop.lat,
                lon=stop.lon,
                distance_meters=round(distance, 1),
                routes=base_routes,
            )
        )

    results.sort(key=lambda s: (s.distance_meters, s.code))
    results = results[:limit]
    return NearbyStopsResponse(stops=results, count=len(results))
