"""Reconcile station codes between the static graph and live responses.

The route API, the location API and the government reference list spell
the same stop differently: "T304/1", "T304_1", "T304-1", or just "T304".
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from dsat_mcp.matching.models import MatchType, StationResolution
from dsat_mcp.matching.normalizers import base_station_code, normalize_station_code
from dsat_mcp.models.graph import NetworkGraph
from dsat_mcp.models.live import LiveSnapshot


@dataclass
class IndexedStation:
    """Station entry with pre-computed normalized forms."""

    code: str
    position: int
    normalized: str
    base: str
    alias: str | None  # normalized alias


class StationResolver:
    """Resolve station codes against an ordered set of known stations.

    Matching rules, first match wins:
    1. Exact match after separator normalization
    2. Base-code match (suffix after the separator stripped on both sides)
    3. Alias match against the station's secondary code

    When several stations share a base code or alias, the earliest entry
    wins, which for a snapshot is the first occurrence along the route.

    Usage:
        resolver = StationResolver.from_graph(graph)
        resolution = resolver.resolve("T304_1")
    """

    def __init__(self, entries: Iterable[tuple[str, str | None]]):
        """Build the index from (code, alias) pairs in priority order."""
        self.stations: list[IndexedStation] = []
        self._by_normalized: dict[str, IndexedStation] = {}
        self._by_base: dict[str, IndexedStation] = {}
        self._by_alias: dict[str, IndexedStation] = {}

        for position, (code, alias) in enumerate(entries):
            station = IndexedStation(
                code=code,
                position=position,
                normalized=normalize_station_code(code),
                base=base_station_code(code),
                alias=normalize_station_code(alias) if alias else None,
            )
            self.stations.append(station)
            self._by_normalized.setdefault(station.normalized, station)
            self._by_base.setdefault(station.base, station)
            if station.alias:
                self._by_alias.setdefault(station.alias, station)

    @classmethod
    def from_graph(cls, graph: NetworkGraph) -> "StationResolver":
        return cls((stop.code, stop.alias) for stop in graph.stops.values())

    @classmethod
    def from_codes(cls, codes: Sequence[str]) -> "StationResolver":
        return cls((code, None) for code in codes)

    @classmethod
    def from_snapshot(cls, snapshot: LiveSnapshot) -> "StationResolver":
        return cls.from_codes(snapshot.station_codes)

    def resolve(self, code: str | None) -> StationResolution:
        """Map a station code onto a known station.

        Args:
            code: Station code in any of the upstream spellings.

        Returns:
            StationResolution; ``resolved`` is False when no rule matched.
        """
        query = code or ""
        if not query.strip():
            return StationResolution(query=query, resolved=False)

        normalized = normalize_station_code(query)
        base = base_station_code(query)

        # 1. Exact (normalized) match
        station = self._by_normalized.get(normalized)
        match_type = MatchType.EXACT

        # 2. Base code match
        if station is None:
            station = self._by_base.get(base)
            match_type = MatchType.BASE_CODE

        # 3. Alias match (full code, then base)
        if station is None:
            station = self._by_alias.get(normalized) or self._by_alias.get(base)
            match_type = MatchType.ALIAS

        if station is None:
            return StationResolution(query=query, resolved=False)

        return StationResolution(
            query=query,
            resolved=True,
            code=station.code,
            position=station.position,
            match_type=match_type,
        )

    def __len__(self) -> int:
        return len(self.stations)
