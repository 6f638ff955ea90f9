from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Route catalog as published on the DSAT portal
DEFAULT_ROUTES: list[str] = [
    "1", "1A", "2", "2A", "2AS", "3", "3A", "3AX", "3X", "4", "5", "5X",
    "6A", "6B", "7", "8", "8A", "9", "9A", "10", "10B", "11", "12", "15",
    "15S", "15S1", "16", "16S", "17", "17S", "18", "18A", "18B", "19",
    "21A", "22", "23", "25", "25AX", "25B", "25BS", "26", "26A", "27",
    "28A", "28B", "28C", "29", "30", "30X", "32", "33", "34", "35", "36",
    "37", "39", "50", "50B", "51", "51A", "51X", "52", "55", "56", "59",
    "60", "61", "65", "71", "71S", "72", "73", "101X", "102X", "103",
    "701X", "701XS", "AP1", "AP1X", "H1", "H2", "H3", "MT1", "MT2",
    "MT3", "MT4", "MT5", "N1A", "N1B", "N2", "N3", "N5", "N6",
]


class DSATConfig(BaseSettings):
    """Configuration for DSAT API access and the graph artifact.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    base_url: str = Field(default="https://bis.dsat.gov.mo:37812/macauweb", alias="DSAT_BASE_URL")
    graph_path: Path = Field(default=Path("data/bus_data.json"), alias="DSAT_GRAPH_PATH")
    routes: list[str] = Field(default_factory=lambda: list(DEFAULT_ROUTES), alias="DSAT_ROUTES")

    # Request behaviour
    request_timeout_seconds: float = Field(default=5.0, gt=0, lt=10, alias="DSAT_REQUEST_TIMEOUT")
    request_delay_seconds: float = Field(default=0.2, ge=0, alias="DSAT_REQUEST_DELAY")
    poll_interval_seconds: float = Field(default=8.0, ge=5, le=8, alias="DSAT_POLL_INTERVAL")

    # Request parameters shared by every endpoint
    lang: str = Field(default="zh-tw", alias="DSAT_LANG")
    device: str = Field(default="web", alias="DSAT_DEVICE")

    # Values of the undocumented routeType field probed by the live path
    route_type_variants: list[str] = Field(default_factory=lambda: ["0", "2"], alias="DSAT_ROUTE_TYPES")

    # The service rejects requests that do not look like they come from its own portal
    referer: str = "https://bis.dsat.gov.mo:37812/macauweb/map.html"
    origin: str = "https://bis.dsat.gov.mo:37812"
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    @property
    def route_data_url(self) -> str:
        return f"{self.base_url}/getRouteData.html"

    @property
    def live_buses_url(self) -> str:
        return f"{self.base_url}/routestation/bus"

    @property
    def station_location_url(self) -> str:
        return f"{self.base_url}/routestation/location"

    @property
    def traffic_url(self) -> str:
        return f"{self.base_url}/routestation/traffic"


@lru_cache
def get_config() -> DSATConfig:
    """Get DSAT configuration (cached singleton).

    Returns:
        DSATConfig with values from .env file or environment variables.
    """
    return DSATConfig()
