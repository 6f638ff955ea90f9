"""Station code resolution and stop search."""

from dsat_mcp.matching.models import (
    MatchType,
    StationResolution,
    StopSearchMatch,
    StopSearchResponse,
)
from dsat_mcp.matching.normalizers import (
    base_station_code,
    normalize_name,
    normalize_station_code,
    remove_accents,
)
from dsat_mcp.matching.station_resolver import StationResolver
from dsat_mcp.matching.stop_search import search_stops

__all__ = [
    # Resolver
    "StationResolver",
    "search_stops",
    # Models
    "MatchType",
    "StationResolution",
    "StopSearchMatch",
    "StopSearchResponse",
    # Normalizers
    "normalize_station_code",
    "base_station_code",
    "normalize_name",
    "remove_accents",
]
