"""MCP tools for looking up stops in the static graph."""

from dsat_mcp.app import mcp
from dsat_mcp.data.graph_store import get_graph
from dsat_mcp.matching.models import StationResolution, StopSearchResponse
from dsat_mcp.matching.station_resolver import StationResolver
from dsat_mcp.matching.stop_search import search_stops as _search_stops
from dsat_mcp.models.responses import NearbyStopsResponse
from dsat_mcp.services.nearby_service import find_nearby_stops as _find_nearby_stops


@mcp.tool()
def resolve_station(code: str) -> StationResolution:
    """Map a station code in any upstream spelling onto a known stop.

    Rules (first match wins):
    1. Exact match after treating "/", "_" and "-" as the same separator
    2. Base code match ("T304" matches "T304/1")
    3. Alias code from reference data

    Args:
        code: Station code, e.g. "M26_4".

    Returns:
        StationResolution; resolved=False when no stop matches.
    """
    return StationResolver.from_graph(get_graph()).resolve(code)


@mcp.tool()
def search_stops(query: str, limit: int = 10, min_score: float = 60.0) -> StopSearchResponse:
    """Search Macau bus stops by station code or name (Chinese or Portuguese).

    Examples:
        search_stops("M228")  # Station code
        search_stops("Praça Ferreira Amaral")  # Name, accents optional

    Args:
        query: Station code or stop name.
        limit: Maximum number of results to return (default 10, max 50).
        min_score: Minimum fuzzy match score 0-100 (default 60).

    Returns:
        StopSearchResponse with matches ordered by score.
    """
    limit = max(1, min(50, limit))
    min_score = max(0.0, min(100.0, min_score))

    return _search_stops(get_graph(), query, limit=limit, min_score=min_score)


@mcp.tool()
def find_nearby_stops(
    lat: float,
    lon: float,
    limit: int = 20,
    radius_meters: int | None = None,
) -> NearbyStopsResponse:
    """Find the bus stops closest to a position.

    Args:
        lat: Latitude in degrees.
        lon: Longitude in degrees.
        limit: Maximum number of stops (default 20, max 50).
        radius_meters: Optional search radius (max 10000m).

    Returns:
        NearbyStopsResponse sorted by distance, with the routes serving each stop.
    """
    limit = max(1, min(50, limit))
    if radius_meters is not None:
        radius_meters = max(1, min(10000, radius_meters))

    return _find_nearby_stops(get_graph(), lat, lon, limit=limit, radius_meters=radius_meters)
