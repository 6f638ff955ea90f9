"""Persistence helpers for the static graph artifact."""

import logging
from functools import lru_cache
from pathlib import Path

from dsat_mcp.data.config import get_config
from dsat_mcp.models.graph import NetworkGraph

logger = logging.getLogger(__name__)


def get_graph_path() -> Path:
    """Get the graph artifact path from configuration."""
    return get_config().graph_path


def save_graph(graph: NetworkGraph, path: Path) -> None:
    """Write the graph as pretty-printed JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(graph.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    logger.info(f"Saved graph to {path}")


def load_graph(path: Path | None = None) -> NetworkGraph:
    """Load a graph artifact.

    Args:
        path: Optional artifact path. Uses DSAT_GRAPH_PATH (default
              'data/bus_data.json') if not provided.

    Raises:
        FileNotFoundError: If the artifact doesn't exist.
        pydantic.ValidationError: If the file is not a valid graph.
    """
    if path is None:
        path = get_graph_path()

    if not path.exists():
        raise FileNotFoundError(
            f"Graph not found at {path}. Run 'dsat-mcp build-graph' to create it."
        )

    return NetworkGraph.model_validate_json(path.read_text(encoding="utf-8"))


@lru_cache
def get_graph() -> NetworkGraph:
    """Get the configured graph (cached; treated as immutable once loaded)."""
    return load_graph()
