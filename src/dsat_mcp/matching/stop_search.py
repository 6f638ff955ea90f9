from rapidfuzz import fuzz

from dsat_mcp.matching.models import StopSearchMatch, StopSearchResponse
from dsat_mcp.matching.normalizers import normalize_name
from dsat_mcp.matching.station_resolver import StationResolver
from dsat_mcp.models.graph import NetworkGraph, Stop

CODE_MATCH_SCORE = 100.0


def _compute_fuzzy_score(query_normalized: str, target_normalized: str) -> float:
    """Blend token_set_ratio (word order) with partial_ratio (substrings).

    Returns:
        Score in 0-100 range
    """
    token_score = fuzz.token_set_ratio(query_normalized, target_normalized)
    partial_score = fuzz.partial_ratio(query_normalized, target_normalized)
    return min(100.0, token_score * 0.7 + partial_score * 0.3)


def _to_match(stop: Stop, score: float) -> StopSearchMatch:
    return StopSearchMatch(
        code=stop.code,
        name=stop.name,
        lat=stop.lat,
        lon=stop.lon,
        routes=list(stop.routes),
        score=score,
    )


def search_stops(
    graph: NetworkGraph,
    query: str,
    limit: int = 10,
    min_score: float = 60.0,
) -> StopSearchResponse:
    """Search stops by station code or name.

    Resolution strategy (priority order):
    1. Station code via the resolver rules -> score=100
    2. Fuzzy name matching -> score from rapidfuzz

    Args:
        graph: Static network graph.
        query: Station code or (part of) a stop name.
        limit: Maximum number of results to return.
        min_score: Minimum fuzzy score threshold (0-100).
    """
    query = query.strip()
    if not query:
        return StopSearchResponse(query=query, matches=[], count=0)

    code_matches: list[StopSearchMatch] = []
    name_matches: list[StopSearchMatch] = []

    resolution = StationResolver.from_graph(graph).resolve(query)
    if resolution.resolved and resolution.code in graph.stops:
        code_matches.append(_to_match(graph.stops[resolution.code], CODE_MATCH_SCORE))

    query_normalized = normalize_name(query)
    for stop in graph.stops.values():
        if stop.code == resolution.code:
            continue
        score = _compute_fuzzy_score(query_normalized, normalize_name(stop.name))
        if score >= min_score:
            name_matches.append(_to_match(stop, score))

    name_matches.sort(key=lambda m: (-m.score, m.code))
    matches = (code_matches + name_matches)[:limit]
    return StopSearchResponse(query=query, matches=matches, count=len(matches))
