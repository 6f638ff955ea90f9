"""Tests for station code resolution."""

import pytest

from dsat_mcp.matching.models import MatchType
from dsat_mcp.matching.station_resolver import StationResolver
from dsat_mcp.models.graph import NetworkGraph, Stop
from dsat_mcp.models.live import LiveSnapshot, LiveStop


@pytest.fixture
def resolver() -> StationResolver:
    """Resolver over a small ordered station list."""
    return StationResolver(
        [
            ("M228", None),
            ("M26/4", "Z26_A"),
            ("T304/1", None),
            ("T304/2", None),
            ("C1", "MA2"),
        ]
    )


class TestExactMatch:
    def test_identical_code(self, resolver: StationResolver) -> None:
        result = resolver.resolve("M228")

        assert result.resolved is True
        assert result.code == "M228"
        assert result.position == 0
        assert result.match_type == MatchType.EXACT

    @pytest.mark.parametrize("query", ["M26/4", "M26_4", "m26-4", " M26/4 "])
    def test_separator_variants(self, resolver: StationResolver, query: str) -> None:
        """Codes differing only in separator or case resolve to the same stop."""
        result = resolver.resolve(query)

        assert result.code == "M26/4"
        assert result.position == 1
        assert result.match_type == MatchType.EXACT
        assert result.query == query

    def test_exact_beats_base(self, resolver: StationResolver) -> None:
        result = resolver.resolve("T304_2")

        assert result.code == "T304/2"
        assert result.position == 3


class TestBaseCodeMatch:
    def test_base_code_matches_first_suffixed(self, resolver: StationResolver) -> None:
        result = resolver.resolve("T304")

        assert result.code == "T304/1"
        assert result.position == 2
        assert result.match_type == MatchType.BASE_CODE

    def test_unknown_suffix_falls_back_to_base(self, resolver: StationResolver) -> None:
        result = resolver.resolve("M228/9")

        assert result.code == "M228"
        assert result.match_type == MatchType.BASE_CODE


class TestAliasMatch:
    def test_alias(self, resolver: StationResolver) -> None:
        result = resolver.resolve("MA2")

        assert result.code == "C1"
        assert result.position == 4
        assert result.match_type == MatchType.ALIAS

    def test_alias_with_other_separator(self, resolver: StationResolver) -> None:
        result = resolver.resolve("z26-a")

        assert result.code == "M26/4"
        assert result.match_type == MatchType.ALIAS


class TestUnresolved:
    @pytest.mark.parametrize("query", ["X999", "", "   ", None])
    def test_unresolved(self, resolver: StationResolver, query: str | None) -> None:
        """Unresolved results carry no code or position, unlike a match at index 0."""
        result = resolver.resolve(query)

        assert result.resolved is False
        assert result.code is None
        assert result.position is None
        assert result.match_type is None


class TestConstructors:
    def test_from_graph_uses_aliases(self) -> None:
        graph = NetworkGraph(
            stops={
                "T304/1": Stop(code="T304/1", name="提督/雅廉訪", alias="T304A"),
                "M228": Stop(code="M228", name="關閘"),
            }
        )
        resolver = StationResolver.from_graph(graph)

        assert len(resolver) == 2
        assert resolver.resolve("T304A").code == "T304/1"
        assert resolver.resolve("M228").position == 1

    def test_from_snapshot_positions_follow_route(self) -> None:
        """Repeated stops on loop routes resolve to the first visit."""
        snapshot = LiveSnapshot(
            route="N1",
            direction=0,
            stops=[LiveStop(station_code=code) for code in ["A/1", "B", "A/1", "C"]],
        )
        resolver = StationResolver.from_snapshot(snapshot)

        assert resolver.resolve("A_1").position == 0
        assert resolver.resolve("C").position == 3

    def test_from_codes(self) -> None:
        resolver = StationResolver.from_codes(["M1", "M2"])
        assert resolver.resolve("m2").position == 1
