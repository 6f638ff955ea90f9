import argparse
import asyncio
import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel

from dsat_mcp.app import mcp
from dsat_mcp.models.responses import ArrivalStatus, StopArrivalsResponse

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


@mcp.tool()
def health() -> HealthResponse:
    """Check if the DSAT MCP server is running and healthy.

    Returns the server status, version, and current timestamp.
    """
    from dsat_mcp import __version__

    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


def parse_routes(value: str) -> list[str]:
    """Parse a comma-separated route list, e.g. "33, 3A,N2" -> ["33", "3A", "N2"]."""
    return [route.strip() for route in value.split(",") if route.strip()]


def read_routes_file(path: Path) -> list[str]:
    """Read a route catalog: a JSON array, or one route per line."""
    text = path.read_text(encoding="utf-8")
    if text.lstrip().startswith("["):
        return [str(route).strip() for route in json.loads(text) if str(route).strip()]
    return [line.strip() for line in text.splitlines() if line.strip() and not line.startswith("#")]


def read_reference_stops(path: Path) -> list[dict]:
    """Read a reference stop list: either a JSON array or {"stops": [...]}."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("stops", [])
    return [record for record in data if isinstance(record, dict)]


async def run_build_graph(
    output: Path,
    routes: list[str],
    reference_stops: Path | None = None,
    enrich_coords: bool = False,
) -> None:
    """Scrape every route and write the graph artifact."""
    from dsat_mcp.data.config import get_config
    from dsat_mcp.data.dsat_client import DSATClient
    from dsat_mcp.data.graph_builder import GraphBuilder, check_consistency, merge_reference_stops
    from dsat_mcp.data.graph_store import save_graph

    config = get_config()
    async with DSATClient(config) as client:
        builder = GraphBuilder(client, config)
        graph = await builder.build(routes)
        if reference_stops is not None:
            merge_reference_stops(graph, read_reference_stops(reference_stops))
        if enrich_coords:
            await builder.enrich_coordinates(graph)

    for problem in check_consistency(graph):
        logger.warning(problem)

    save_graph(graph, output)

    print("\nGraph build complete.")
    print(f"  Stops: {graph.meta.stop_count:,}")
    print(f"  Route directions: {graph.meta.route_count:,}")
    print(f"  Saved to: {output}")


def format_arrivals(response: StopArrivalsResponse) -> str:
    """Render a StopArrivalsResponse as a short text block for the terminal."""
    if response.stop is None:
        return f"{response.query}: {response.status.value}"

    lines = [f"{response.stop.code} {response.stop.name} ({response.fetched_at})"]
    for route in response.routes:
        prediction = route.prediction
        if route.status == ArrivalStatus.ACTIVE and prediction is not None:
            detail = f"{prediction.eta_minutes} min, {prediction.stops_away} stops"
        else:
            detail = route.status.value
        destination = f" to {route.destination}" if route.destination else ""
        lines.append(f"  {route.route}{destination}: {detail}")
    return "\n".join(lines)


async def run_watch(stop_code: str, interval: float) -> None:
    """Poll arrivals for one stop until interrupted."""
    from dsat_mcp.services.arrivals_service import get_stop_arrivals
    from dsat_mcp.services.poller import ArrivalPoller

    async with ArrivalPoller(get_stop_arrivals, interval=interval) as poller:
        poller.expand(stop_code, lambda response: print(format_arrivals(response)))
        await asyncio.Event().wait()


def main() -> None:
    # Importing the tool modules registers them on the shared app
    from dsat_mcp.data.config import get_config
    from dsat_mcp.tools import arrivals_tools, stop_tools  # noqa: F401

    config = get_config()

    parser = argparse.ArgumentParser(
        prog="dsat-mcp",
        description="DSAT Transit MCP Server",
    )
    subparsers = parser.add_subparsers(dest="command")

    # build-graph command
    build_parser = subparsers.add_parser(
        "build-graph",
        help="Scrape every route into the static graph artifact",
    )
    build_parser.add_argument(
        "--output",
        type=Path,
        default=config.graph_path,
        help="Graph JSON path (default: data/bus_data.json or DSAT_GRAPH_PATH env var)",
    )
    build_parser.add_argument(
        "--routes",
        type=parse_routes,
        default=None,
        help="Comma-separated routes to scrape (default: configured catalog)",
    )
    build_parser.add_argument(
        "--routes-file",
        type=Path,
        default=None,
        help="File with the route catalog (JSON array or one route per line)",
    )
    build_parser.add_argument(
        "--reference-stops",
        type=Path,
        default=None,
        help="Government stop list JSON used for aliases and coordinates",
    )
    build_parser.add_argument(
        "--enrich-coords",
        action="store_true",
        help="Fetch station coordinates for every route direction",
    )
    build_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    # watch command
    watch_parser = subparsers.add_parser(
        "watch",
        help="Poll live arrivals for a stop until interrupted",
    )
    watch_parser.add_argument("stop_code", help="Station code, e.g. M228 or T304_1")
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=config.poll_interval_seconds,
        help="Seconds between polls (default: 8 or DSAT_POLL_INTERVAL env var)",
    )
    watch_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.command in ("build-graph", "watch"):
        # Configure logging
        log_level = logging.DEBUG if args.verbose else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    if args.command == "build-graph":
        if args.routes is not None:
            routes = args.routes
        elif args.routes_file is not None:
            routes = read_routes_file(args.routes_file)
        else:
            routes = config.routes

        asyncio.run(
            run_build_graph(args.output, routes, args.reference_stops, args.enrich_coords)
        )
    elif args.command == "watch":
        try:
            asyncio.run(run_watch(args.stop_code, args.interval))
        except KeyboardInterrupt:
            pass
    else:
        # Default: run MCP server
        mcp.run()


if __name__ == "__main__":
    main()
