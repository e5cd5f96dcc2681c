"""FastAPI application for the development Property Store.

Run it with::

    uvicorn landgrid.store.app:create_app --factory --port 3001
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from landgrid import __version__
from landgrid.core.config import Settings
from landgrid.store.pricing import PriceTable
from landgrid.store.registry import LandRegistry
from landgrid.store.router import router as store_router


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str = __version__


def create_app(
    settings: Settings | None = None,
    registry: LandRegistry | None = None,
    price_table: PriceTable | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Uses the factory pattern so tests can create isolated app instances
    with a pre-seeded registry.

    Args:
        settings: Application settings. Defaults to Settings().
        registry: Optional pre-built LandRegistry.
        price_table: Optional pre-built PriceTable.

    Returns:
        A configured FastAPI instance.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Land Grid Property Store",
        description="Development server for grid cell ownership and trading",
        version=__version__,
        debug=settings.debug,
    )

    # CORS for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if registry is None:
        registry = LandRegistry(starting_tokens=settings.server.starting_tokens)
    if price_table is None:
        price_table = PriceTable(
            settings.server.pricing_path,
            default_price=settings.server.default_price_per_cell,
        )

    app.state.settings = settings
    app.state.registry = registry
    app.state.price_table = price_table

    app.include_router(store_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy", service="landgrid-property-store")

    return app
