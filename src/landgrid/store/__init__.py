"""Development Property Store server."""

from landgrid.store.app import create_app
from landgrid.store.pricing import PriceTable
from landgrid.store.registry import LandRegistry

__all__ = ["LandRegistry", "PriceTable", "create_app"]
