from enum import Enum

from pydantic import BaseModel, Field

from dsat_mcp.models.live import LiveVehicle


class ArrivalStatus(str, Enum):
    """Outcome of a prediction for one stop on one route."""

    ACTIVE = "active"  # a vehicle is approaching, ETA available
    ARRIVING = "arriving"  # nearest vehicle is at the stop, no ETA
    NO_APPROACHING = "no-approaching"  # vehicles exist but all are past the stop
    NO_SERVICE = "no-service"  # no vehicles / no resolvable snapshot
    UNRESOLVED = "unresolved"  # station code did not match anything
    UNKNOWN = "unknown"  # upstream failed for this query


class ArrivalPrediction(BaseModel):
    """ETA of one vehicle (or none) to a target stop. Derived, never stored."""

    target_index: int
    status: ArrivalStatus
    vehicle: LiveVehicle | None = None
    vehicle_index: int | None = Field(default=None, description="Stop index the vehicle is attached to")
    stops_away: int | None = None
    eta_minutes: int | None = Field(default=None, description="Omitted when arriving or unknown")
    distance_meters: float | None = Field(
        default=None, description="Path distance from vehicle to stop over segments with coordinates"
    )


class StopInfo(BaseModel):
    code: str
    name: str
    lat: float | None = None
    lon: float | None = None
    routes: list[str] = []


class RouteArrivals(BaseModel):
    """Arrival information for one route at the observed stop."""

    route: str
    direction: int | None = Field(default=None, description="Direction of the selected snapshot")
    status: ArrivalStatus
    destination: str | None = Field(default=None, description="Name of the last stop")
    target_index: int | None = None
    total_stops: int | None = None
    variant: str | None = Field(default=None, description="Candidate strategy that won selection")
    prediction: ArrivalPrediction | None = Field(
        default=None, description="Nearest approaching vehicle (authoritative for display)"
    )
    vehicles: list[ArrivalPrediction] = Field(
        default_factory=list, description="Every approaching vehicle, nearest first"
    )
    traffic_levels: list[int] = Field(
        default_factory=list, description="Congestion level of the segment leaving each stop"
    )


class StopArrivalsResponse(BaseModel):
    query: str = Field(description="Station code as requested")
    status: ArrivalStatus = Field(description="UNRESOLVED when the station is not in the graph")
    stop: StopInfo | None = None
    routes: list[RouteArrivals] = []
    fetched_at: str = Field(description="ISO timestamp of the poll cycle")


class NearbyStop(BaseModel):
    code: str
    name: str
    lat: float
    lon: float
    distance_meters: float
    routes: list[str] = Field(default_factory=list, description="Base route numbers")


class NearbyStopsResponse(BaseModel):
    stops: list[NearbyStop]
    count: int = Field(description="Number of stops returned")


class RouteStopStatus(BaseModel):
    """One stop of a tracked route-direction."""

    index: int
    code: str
    name: str | None = None
    lat: float | None = None
    lon: float | None = None
    vehicles: list[LiveVehicle] = Field(default_factory=list, description="Buses attached to this stop")
    traffic_level: int = Field(default=0, description="Congestion on the segment leaving this stop (0-4)")
    prediction: ArrivalPrediction = Field(description="Nearest approaching bus for this stop")


class RouteStatusResponse(BaseModel):
    """Live view of one route-direction: every stop, its buses and its ETA."""

    route: str
    direction: int
    status: ArrivalStatus = Field(description="ACTIVE when any bus runs, NO_SERVICE/UNKNOWN otherwise")
    destination: str | None = None
    variant: str | None = Field(default=None, description="Candidate strategy that won selection")
    active_vehicles: int = 0
    stops: list[RouteStopStatus] = []
    fetched_at: str = Field(description="ISO timestamp of the poll cycle")
