from dsat_mcp.app import mcp
from dsat_mcp.models.responses import RouteStatusResponse, StopArrivalsResponse
from dsat_mcp.services.arrivals_service import (
    get_route_status as _get_route_status,
)
from dsat_mcp.services.arrivals_service import (
    get_stop_arrivals as _get_stop_arrivals,
)


@mcp.tool()
async def get_stop_arrivals(stop_code: str) -> StopArrivalsResponse:
    """Get live bus arrival predictions at a Macau bus stop.

    For every route serving the stop, the freshest live snapshot is chosen
    and the nearest approaching bus is used to estimate minutes until
    arrival, weighted by current traffic on each road segment.

    Per-route status values:
    - active: ETA available (eta_minutes, stops_away, distance_meters)
    - arriving: the bus is at the stop now
    - no-approaching: buses are running but all have passed the stop
    - no-service: no buses on the route
    - unknown: the upstream service could not be reached

    A top-level status of "unresolved" means the station code is wrong,
    not that there is no service.

    Args:
        stop_code: Station code, any spelling (e.g. "M228", "T304/1", "T304_1").

    Returns:
        StopArrivalsResponse with one entry per serving route.
    """
    return await _get_stop_arrivals(stop_code.strip())


@mcp.tool()
async def get_route_status(route: str, direction: int = 0) -> RouteStatusResponse:
    """Get the live state of one bus route in one direction.

    Lists every stop in order with the buses currently at or leaving it,
    the traffic level of the road segment after it (0 unknown, 1 smooth,
    2 moderate, 3 congested, 4 severe) and the ETA of the nearest
    approaching bus.

    Args:
        route: Route number, e.g. "33", "3A", "N2".
        direction: 0 or 1 (default 0).

    Returns:
        RouteStatusResponse; status "no-service" when no buses are running
        and "unknown" when the upstream service could not be reached.
    """
    direction = 1 if direction else 0
    return await _get_route_status(route.strip().upper(), direction)
