"""Application configuration loaded from environment and config files."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class GridConfig(BaseSettings):
    """Grid geometry and zoom thresholds.

    ``size_lat`` is a single latitude correction calibrated so that cells
    render roughly square at mid latitudes; it is not a per-latitude
    ``cos(lat)`` correction.
    """

    model_config = {"env_prefix": "LANDGRID_GRID_"}

    size_lng: float = 0.0001
    size_lat: float = 0.0000705
    min_zoom: float = 17
    max_zoom: float = 30


class StoreConfig(BaseSettings):
    """Remote Property Store connection settings."""

    model_config = {"env_prefix": "LANDGRID_STORE_"}

    base_url: str = "http://localhost:3001/api"
    api_token: str | None = None
    timeout_seconds: int = 10
    max_retries: int = 1
    retry_backoff_seconds: float = 0.5
    refresh_interval_seconds: float = 30.0


class GeocoderConfig(BaseSettings):
    """Reverse geocoding (Mapbox-compatible) settings."""

    model_config = {"env_prefix": "LANDGRID_GEOCODER_"}

    base_url: str = "https://api.mapbox.com"
    access_token: str = ""
    timeout_seconds: int = 10


class PricingConfig(BaseSettings):
    """Per-cell price lookup settings."""

    model_config = {"env_prefix": "LANDGRID_PRICING_"}

    base_url: str = "http://localhost:3001/api"
    timeout_seconds: int = 10


class SelectionConfig(BaseSettings):
    """Client-side selection preferences."""

    model_config = {"env_prefix": "LANDGRID_SELECTION_"}

    cache_path: str = "data/selection.json"
    color: str = "#0080ff"


class ServerConfig(BaseSettings):
    """Reference Property Store server settings."""

    model_config = {"env_prefix": "LANDGRID_SERVER_"}

    pricing_path: str | None = None  # None: config/pricing.yml in the project root
    starting_tokens: float = 10.0
    default_price_per_cell: float = 1.0


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "LANDGRID_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    grid: GridConfig = Field(default_factory=GridConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    geocoder: GeocoderConfig = Field(default_factory=GeocoderConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
