"""Pydantic models for live snapshots returned by the DSAT service.

These models represent the subset of upstream fields we actually use. Live
data is ephemeral: it belongs to the poll cycle that fetched it.
"""

import logging
from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class VehicleStatus(str, Enum):
    """Vehicle position relative to its stop.

    Upstream reports "1" when the bus is at the stop and "0" when it is on
    the segment leaving it.
    """

    AT_STOP = "at-stop"
    IN_TRANSIT = "in-transit"


class CongestionLevel(IntEnum):
    """Traffic tier of a road segment."""

    UNKNOWN = 0
    SMOOTH = 1
    MODERATE = 2
    CONGESTED = 3
    SEVERE = 4


def _to_float(value: object) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class LiveVehicle(BaseModel):
    """A bus reported in a live snapshot."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    plate: str = Field(alias="busPlate")
    status: VehicleStatus = VehicleStatus.IN_TRANSIT
    speed: float | None = None  # km/h
    passenger_flow: int | None = Field(default=None, alias="passengerFlow")
    accessible: bool = Field(default=False, alias="isFacilities")
    bus_type: str | None = Field(default=None, alias="busType")  # 1=large, 2=medium, 3=small

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: object) -> VehicleStatus:
        if isinstance(value, VehicleStatus):
            return value
        # only "1" means at the stop; anything else is on the road
        if str(value).strip() in ("1", VehicleStatus.AT_STOP.value):
            return VehicleStatus.AT_STOP
        return VehicleStatus.IN_TRANSIT

    @field_validator("speed", mode="before")
    @classmethod
    def _parse_speed(cls, value: object) -> float | None:
        return _to_float(value)

    @field_validator("passenger_flow", mode="before")
    @classmethod
    def _parse_passenger_flow(cls, value: object) -> int | None:
        number = _to_float(value)
        return int(number) if number is not None else None

    @field_validator("accessible", mode="before")
    @classmethod
    def _parse_accessible(cls, value: object) -> bool:
        return str(value).strip().lower() in ("1", "true", "y", "yes")


class LiveStop(BaseModel):
    """A stop in a live snapshot with the vehicles attached to it."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    station_code: str = Field(alias="staCode")
    name: str | None = Field(default=None, alias="staName")
    lane_name: str | None = Field(default=None, alias="laneName")
    vehicles: list[LiveVehicle] = Field(default_factory=list, alias="busInfo")
    lat: float | None = Field(default=None, alias="latitude")
    lon: float | None = Field(default=None, alias="longitude")

    @field_validator("vehicles", mode="before")
    @classmethod
    def _parse_vehicles(cls, value: object) -> list:
        if not isinstance(value, list):
            return []
        # a malformed bus drops only itself, never its stop
        vehicles = []
        for item in value:
            try:
                vehicles.append(LiveVehicle.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed vehicle: {e}")
        return vehicles

    @field_validator("lat", "lon", mode="before")
    @classmethod
    def _parse_coordinate(cls, value: object) -> float | None:
        number = _to_float(value)
        # upstream uses 0 for unknown positions
        return number if number else None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None


class LiveSnapshot(BaseModel):
    """Ordered stop list of one route-direction with active vehicles."""

    route: str
    direction: int
    stops: list[LiveStop] = []
    variant: str | None = None  # name of the candidate strategy that produced it

    @property
    def station_codes(self) -> list[str]:
        return [stop.station_code for stop in self.stops]

    @property
    def active_vehicle_count(self) -> int:
        return sum(len(stop.vehicles) for stop in self.stops)

    def vehicle_positions(self) -> list[tuple[int, LiveVehicle]]:
        """All (stop index, vehicle) pairs in traversal order."""
        return [
            (index, vehicle)
            for index, stop in enumerate(self.stops)
            for vehicle in stop.vehicles
        ]


class StationLocation(BaseModel):
    """Coordinates of a station as reported by the location endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    station_code: str = Field(alias="stationCode")
    lat: float | None = Field(default=None, alias="latitude")
    lon: float | None = Field(default=None, alias="longitude")

    @field_validator("lat", "lon", mode="before")
    @classmethod
    def _parse_coordinate(cls, value: object) -> float | None:
        number = _to_float(value)
        return number if number else None


class TrafficSegment(BaseModel):
    """Congestion on the segment leaving a station."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    station_code: str | None = Field(default=None, alias="stationCode")
    level: CongestionLevel = Field(default=CongestionLevel.UNKNOWN, alias="traffic")

    @field_validator("level", mode="before")
    @classmethod
    def _parse_level(cls, value: object) -> CongestionLevel:
        number = _to_float(value)
        if number is None or number < 0:
            return CongestionLevel.UNKNOWN
        # anything beyond the top tier is still severe
        return CongestionLevel(min(int(number), CongestionLevel.SEVERE))
