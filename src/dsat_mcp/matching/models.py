from enum import Enum

from pydantic import BaseModel, Field


class MatchType(str, Enum):
    """Rule that resolved a station code, in priority order."""

    EXACT = "exact"  # identical after separator normalization
    BASE_CODE = "base_code"  # identical once suffixes are stripped
    ALIAS = "alias"  # matched the stop's secondary alias code


class StationResolution(BaseModel):
    """Result of mapping a station code onto a known stop.

    An unresolved result has ``resolved=False`` and no code/position, so
    callers can tell "wrong station" apart from a match on the first stop.
    """

    query: str = Field(description="Station code as given")
    resolved: bool
    code: str | None = Field(default=None, description="Canonical code of the matched stop")
    position: int | None = Field(
        default=None, description="Index of the match among the resolver's entries"
    )
    match_type: MatchType | None = None


class StopSearchMatch(BaseModel):
    code: str
    name: str
    lat: float | None = None
    lon: float | None = None
    routes: list[str] = []
    score: float = Field(description="Match score (0-100)")


class StopSearchResponse(BaseModel):
    query: str = Field(description="Original query string")
    matches: list[StopSearchMatch] = Field(description="Matched stops, ordered by score")
    count: int
