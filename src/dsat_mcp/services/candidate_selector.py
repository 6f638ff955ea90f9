"""Choose the freshest live snapshot among upstream parameter variants.

The live endpoint takes an undocumented ``routeType`` field whose correct
value is not known at query time; some values return stale or empty data.
Every configured variant is probed concurrently and the response reporting
the most active vehicles wins.
"""

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum
from typing import Protocol

import httpx
from pydantic import BaseModel

from dsat_mcp.data.dsat_client import DSATClient
from dsat_mcp.matching.station_resolver import StationResolver
from dsat_mcp.models.graph import opposite_direction
from dsat_mcp.models.live import LiveSnapshot

logger = logging.getLogger(__name__)


class CandidateStrategy(Protocol):
    """One way of asking upstream for a live snapshot."""

    name: str

    async def fetch(self, client: DSATClient, route: str, direction: int) -> LiveSnapshot: ...


class RouteTypeStrategy:
    """Fetch the live snapshot with a fixed routeType value."""

    def __init__(self, route_type: str):
        self.route_type = route_type
        self.name = f"routeType={route_type}"

    async def fetch(self, client: DSATClient, route: str, direction: int) -> LiveSnapshot:
        return await client.fetch_live_snapshot(route, direction, route_type=self.route_type)

    def __repr__(self) -> str:
        return f"RouteTypeStrategy({self.route_type!r})"


def strategies_from_variants(variants: Sequence[str]) -> list[CandidateStrategy]:
    return [RouteTypeStrategy(variant) for variant in variants]


class SelectionStatus(str, Enum):
    SELECTED = "selected"
    NO_SERVICE = "no-service"  # responses arrived but none contained the stop
    UNKNOWN = "unknown"  # every request failed


class CandidateResult(BaseModel):
    """Outcome of candidate selection for one stop on one route."""

    route: str
    status: SelectionStatus
    direction: int | None = None
    snapshot: LiveSnapshot | None = None
    target_index: int | None = None
    strategy: str | None = None


class Candidate(BaseModel):
    strategy: str
    snapshot: LiveSnapshot
    target_index: int


class LiveCandidateSelector:
    """Probe all strategies and arbitrate between their responses.

    Usage:
        selector = LiveCandidateSelector(client, strategies_from_variants(["0", "2"]))
        result = await selector.select("33", 0, "M228")
    """

    def __init__(self, client: DSATClient, strategies: Sequence[CandidateStrategy]):
        if not strategies:
            raise ValueError("At least one candidate strategy is required")
        self._client = client
        self._strategies = list(strategies)

    async def _fetch_all(
        self, route: str, direction: int
    ) -> tuple[list[tuple[str, LiveSnapshot]], int]:
        """Run every strategy concurrently for one direction.

        Returns:
            ((strategy name, snapshot) pairs in strategy order, number of failed requests)
        """
        responses = await asyncio.gather(
            *(strategy.fetch(self._client, route, direction) for strategy in self._strategies),
            return_exceptions=True,
        )

        snapshots: list[tuple[str, LiveSnapshot]] = []
        failures = 0
        for strategy, response in zip(self._strategies, responses, strict=True):
            if isinstance(response, BaseException):
                failures += 1
                if isinstance(response, httpx.HTTPStatusError):
                    logger.warning(
                        f"{strategy.name} for route {route} dir {direction} rejected "
                        f"with status {response.response.status_code}"
                    )
                elif isinstance(response, httpx.HTTPError):
                    logger.warning(
                        f"{strategy.name} for route {route} dir {direction} failed: {response!r}"
                    )
                else:
                    raise response
                continue
            snapshots.append((strategy.name, response))
        return snapshots, failures

    async def _probe(
        self, route: str, direction: int, station_code: str
    ) -> tuple[list[Candidate], int]:
        """Fetch one direction and keep the responses containing the stop.

        Returns:
            (candidates in strategy order, number of failed requests)
        """
        snapshots, failures = await self._fetch_all(route, direction)

        candidates: list[Candidate] = []
        for name, snapshot in snapshots:
            resolution = StationResolver.from_snapshot(snapshot).resolve(station_code)
            if not resolution.resolved:
                logger.debug(
                    f"{name} for route {route} dir {direction} does not contain {station_code}"
                )
                continue
            candidates.append(
                Candidate(strategy=name, snapshot=snapshot, target_index=resolution.position)
            )
        return candidates, failures

    async def select_route(self, route: str, direction: int) -> CandidateResult:
        """Select the live snapshot of a whole route-direction.

        Only the given direction is probed. Responses without stops are
        ignored; among the rest the most active vehicles wins.

        Returns:
            CandidateResult without a target index.
        """
        snapshots, failures = await self._fetch_all(route, direction)
        snapshots = [(name, snapshot) for name, snapshot in snapshots if snapshot.stops]

        if not snapshots:
            status = (
                SelectionStatus.UNKNOWN
                if failures == len(self._strategies)
                else SelectionStatus.NO_SERVICE
            )
            return CandidateResult(route=route, status=status)

        name, snapshot = max(snapshots, key=lambda item: item[1].active_vehicle_count)
        return CandidateResult(
            route=route,
            status=SelectionStatus.SELECTED,
            direction=direction,
            snapshot=snapshot,
            strategy=name,
        )

    async def select(self, route: str, direction: int, station_code: str) -> CandidateResult:
        """Select the live snapshot to predict from.

        Tries the given direction first and the opposite direction only if
        no variant resolved the stop.

        Args:
            route: Route number.
            direction: Preferred direction (0 or 1).
            station_code: Target stop in any upstream spelling.

        Returns:
            CandidateResult; SELECTED carries the snapshot and the target's
            index within it.
        """
        total_requests = 0
        total_failures = 0

        for current in (direction, opposite_direction(direction)):
            candidates, failures = await self._probe(route, current, station_code)
            total_requests += len(self._strategies)
            total_failures += failures

            if candidates:
                # max() keeps the first of equally good candidates
                best = max(candidates, key=lambda c: c.snapshot.active_vehicle_count)
                logger.debug(
                    f"Route {route} dir {current}: selected {best.strategy} "
                    f"({best.snapshot.active_vehicle_count} vehicles)"
                )
                return CandidateResult(
                    route=route,
                    status=SelectionStatus.SELECTED,
                    direction=current,
                    snapshot=best.snapshot,
                    target_index=best.target_index,
                    strategy=best.strategy,
                )

        status = (
            SelectionStatus.UNKNOWN if total_failures == total_requests else SelectionStatus.NO_SERVICE
        )
        return CandidateResult(route=route, status=status)
