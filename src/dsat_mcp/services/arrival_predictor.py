"""Physics-style ETA estimates from a live snapshot.

A vehicle's travel time to a stop is the sum, over each segment between
them, of segment length x base pace x traffic multiplier, plus a fixed
dwell time at every stop strictly between the vehicle and the target.
"""

import math
from collections.abc import Sequence

from dsat_mcp.matching.normalizers import base_station_code, normalize_station_code
from dsat_mcp.models.live import CongestionLevel, LiveSnapshot, LiveStop, LiveVehicle, TrafficSegment
from dsat_mcp.models.responses import ArrivalPrediction, ArrivalStatus

# Earth's radius in kilometers for haversine calculation
EARTH_RADIUS_KM = 6371.0

# ~40 km/h average bus speed
BASE_PACE_MINUTES_PER_KM = 1.5
DWELL_MINUTES_PER_STOP = 0.75
MIN_ETA_MINUTES = 1


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great-circle distance between two points in kilometers.

    Args:
        lat1, lon1: First point coordinates in degrees.
        lat2, lon2: Second point coordinates in degrees.

    Returns:
        Distance in kilometers.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def segment_multiplier(level: int) -> float:
    """Travel-time multiplier for a congestion level."""
    if level >= CongestionLevel.CONGESTED:
        return 2.0
    if level == CongestionLevel.MODERATE:
        return 1.5
    return 1.0


def segment_distance_km(start: LiveStop, end: LiveStop) -> float | None:
    """Distance between two consecutive stops, None if either lacks coordinates."""
    if not (start.has_coordinates and end.has_coordinates):
        return None
    return haversine_km(start.lat, start.lon, end.lat, end.lon)


def path_distance_km(stops: Sequence[LiveStop], from_index: int, to_index: int) -> float:
    """Sum of segment lengths from one stop index to a later one.

    Segments without coordinates contribute zero.
    """
    total = 0.0
    for j in range(from_index, to_index):
        distance = segment_distance_km(stops[j], stops[j + 1])
        if distance is not None:
            total += distance
    return total


def travel_minutes(
    stops: Sequence[LiveStop],
    from_index: int,
    to_index: int,
    traffic_levels: Sequence[int] = (),
) -> float:
    """Traffic-weighted travel time between two stop indices.

    Args:
        stops: Ordered stops of the route-direction.
        from_index: Index of the vehicle's stop.
        to_index: Index of the target stop (>= from_index).
        traffic_levels: Congestion level of the segment leaving each stop
            index; missing entries count as unknown (x1.0).

    Returns:
        Minutes, excluding dwell time. Segments missing coordinates are
        skipped rather than treated as infinite.
    """
    total = 0.0
    for j in range(from_index, to_index):
        distance = segment_distance_km(stops[j], stops[j + 1])
        if distance is None:
            continue
        level = traffic_levels[j] if j < len(traffic_levels) else CongestionLevel.UNKNOWN
        total += distance * BASE_PACE_MINUTES_PER_KM * segment_multiplier(level)
    return total


def intervening_stops(vehicle_index: int, target_index: int) -> int:
    """Stops strictly between the vehicle and the target.

    The stop the vehicle occupies and the target itself are not counted:
    vehicle at 0, target at 2 -> 1 intervening stop.
    """
    return max(0, target_index - vehicle_index - 1)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return math.floor(value + 0.5)


def estimate_minutes(
    stops: Sequence[LiveStop],
    vehicle_index: int,
    target_index: int,
    traffic_levels: Sequence[int] = (),
) -> int:
    """Whole-minute ETA for a vehicle strictly before the target, at least 1."""
    total = travel_minutes(stops, vehicle_index, target_index, traffic_levels)
    total += intervening_stops(vehicle_index, target_index) * DWELL_MINUTES_PER_STOP
    return max(MIN_ETA_MINUTES, round_half_up(total))


def _predict_for_vehicle(
    snapshot: LiveSnapshot,
    vehicle_index: int,
    vehicle: LiveVehicle,
    target_index: int,
    traffic_levels: Sequence[int],
) -> ArrivalPrediction:
    stops_away = target_index - vehicle_index
    distance_m = path_distance_km(snapshot.stops, vehicle_index, target_index) * 1000

    if stops_away == 0:
        return ArrivalPrediction(
            target_index=target_index,
            status=ArrivalStatus.ARRIVING,
            vehicle=vehicle,
            vehicle_index=vehicle_index,
            stops_away=0,
            distance_meters=0.0,
        )

    return ArrivalPrediction(
        target_index=target_index,
        status=ArrivalStatus.ACTIVE,
        vehicle=vehicle,
        vehicle_index=vehicle_index,
        stops_away=stops_away,
        eta_minutes=estimate_minutes(snapshot.stops, vehicle_index, target_index, traffic_levels),
        distance_meters=round(distance_m, 1),
    )


def _check_target(snapshot: LiveSnapshot, target_index: int) -> None:
    if not 0 <= target_index < len(snapshot.stops):
        raise ValueError(
            f"Target index {target_index} outside snapshot of {len(snapshot.stops)} stops"
        )


def predict_vehicles(
    snapshot: LiveSnapshot,
    target_index: int,
    traffic_levels: Sequence[int] = (),
) -> list[ArrivalPrediction]:
    """Independent predictions for every vehicle approaching the target.

    Returns:
        One prediction per vehicle at or before the target, nearest first.

    Raises:
        ValueError: If target_index is outside the snapshot.
    """
    _check_target(snapshot, target_index)
    approaching = [
        (index, vehicle)
        for index, vehicle in snapshot.vehicle_positions()
        if index <= target_index
    ]
    # stable sort keeps upstream order for vehicles sharing a stop
    approaching.sort(key=lambda item: target_index - item[0])
    return [
        _predict_for_vehicle(snapshot, index, vehicle, target_index, traffic_levels)
        for index, vehicle in approaching
    ]


def predict_arrival(
    snapshot: LiveSnapshot,
    target_index: int,
    traffic_levels: Sequence[int] = (),
) -> ArrivalPrediction:
    """Prediction for the nearest approaching vehicle.

    Status:
        - NO_SERVICE: the snapshot has no vehicles at all
        - NO_APPROACHING: every vehicle is already past the target
        - ARRIVING: the nearest vehicle is at the target (no ETA)
        - ACTIVE: ETA in whole minutes, at least 1

    Raises:
        ValueError: If target_index is outside the snapshot.
    """
    _check_target(snapshot, target_index)
    if snapshot.active_vehicle_count == 0:
        return ArrivalPrediction(target_index=target_index, status=ArrivalStatus.NO_SERVICE)

    predictions = predict_vehicles(snapshot, target_index, traffic_levels)
    if not predictions:
        return ArrivalPrediction(target_index=target_index, status=ArrivalStatus.NO_APPROACHING)
    return predictions[0]


def _codes_match(segment_code: str, stop_code: str) -> bool:
    segment = normalize_station_code(segment_code)
    stop = normalize_station_code(stop_code)
    return segment == stop or segment == base_station_code(stop)


def align_traffic(snapshot: LiveSnapshot, segments: Sequence[TrafficSegment]) -> list[int]:
    """Map traffic segments onto snapshot stop indices.

    Segments are matched to stops by station code, walking forward along
    the route so a loop route's repeated stops each get their own segment.
    If no segment code matches, segments are taken positionally.

    Returns:
        Congestion level of the segment leaving each stop (0 when unknown),
        one entry per snapshot stop.
    """
    levels = [int(CongestionLevel.UNKNOWN)] * len(snapshot.stops)
    matched = 0
    cursor = 0

    for segment in segments:
        if not segment.station_code:
            continue
        for index in range(cursor, len(snapshot.stops)):
            if _codes_match(segment.station_code, snapshot.stops[index].station_code):
                levels[index] = int(segment.level)
                cursor = index + 1
                matched += 1
                break

    if matched == 0:
        for index, segment in enumerate(segments[: len(levels)]):
            levels[index] = int(segment.level)

    return levels
