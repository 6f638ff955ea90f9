"""Pydantic models for the static stop/route graph artifact.

The artifact is a JSON document::

    {
      "_meta": {"generatedAt": ..., "source": ..., "stopCount": ..., "routeCount": ...},
      "stops": {"M228": {"id": "M228", "name": ..., "routes": ["33_0"], ...}},
      "routes": {"33_0": {"id": "33_0", "baseRoute": "33", "direction": 0, "stops": [...]}}
    }
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


def route_key(route: str, direction: int) -> str:
    """Composite key of a route-direction, e.g. ("33", 0) -> "33_0"."""
    return f"{route}_{direction}"


def opposite_direction(direction: int) -> int:
    return 1 - direction


class Stop(BaseModel):
    """A physical stop keyed by its upstream station code."""

    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(alias="id")
    name: str
    routes: list[str] = Field(default_factory=list, description="Route-direction keys, no duplicates")
    lat: float | None = None
    lon: float | None = None
    alias: str | None = Field(default=None, description="Secondary station code from reference data")

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None

    def add_route(self, key: str) -> None:
        if key not in self.routes:
            self.routes.append(key)


class RouteDirection(BaseModel):
    """One traversal direction of a numbered route."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    base_route: str = Field(alias="baseRoute")
    direction: int = Field(description="0 or 1")
    stops: list[str] = Field(default_factory=list, description="Station codes in traversal order")


class GraphMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    generated_at: datetime = Field(alias="generatedAt")
    source: str
    stop_count: int = Field(alias="stopCount")
    route_count: int = Field(alias="routeCount")


class NetworkGraph(BaseModel):
    """Static topology produced by the graph builder.

    Read-only once loaded by the live path.
    """

    model_config = ConfigDict(populate_by_name=True)

    meta: GraphMeta | None = Field(default=None, alias="_meta")
    stops: dict[str, Stop] = Field(default_factory=dict)
    routes: dict[str, RouteDirection] = Field(default_factory=dict)

    def routes_for_stop(self, code: str) -> list[RouteDirection]:
        """Route-directions serving a stop, in the stop's serving order."""
        stop = self.stops.get(code)
        if stop is None:
            return []
        return [self.routes[key] for key in stop.routes if key in self.routes]
