"""Shared test fixtures and helpers."""

from __future__ import annotations

from typing import Iterable

import httpx
import pytest

from landgrid.core.config import PricingConfig, Settings, StoreConfig
from landgrid.grid.addressing import GridAddressor, deserialize
from landgrid.ownership.reconciler import OwnershipReconciler
from landgrid.pricing.location import LocationInfo
from landgrid.pricing.lookup import PriceLookup, PricingService
from landgrid.properties.client import PropertyStoreClient
from landgrid.properties.models import Property, PropertyDraft
from landgrid.store.app import create_app
from landgrid.store.pricing import PriceTable
from landgrid.store.registry import LandRegistry


STORE_URL = "http://store.test/api"

PRICING_YAML = """\
rules:
  - match: "Manhattan"
    price: 5.0
  - match: "Brooklyn"
    price: 2.0
"""


def store_config(**overrides) -> StoreConfig:
    defaults = {"base_url": STORE_URL, "max_retries": 1, "retry_backoff_seconds": 0.0}
    defaults.update(overrides)
    return StoreConfig(**defaults)


def make_property(prop_id: str, owner: str, cells: Iterable[str], **fields) -> Property:
    return Property(id=prop_id, owner=owner, cells=list(cells), **fields)


def cell_point(addressor: GridAddressor, key: str) -> tuple[float, float]:
    """Interior point of a cell, safe from boundary rounding."""
    return addressor.cell_center(deserialize(key))


def asgi_client(app) -> httpx.AsyncClient:
    """AsyncClient that talks to the app in process."""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=STORE_URL)


class StaticResolver:
    """Stands in for reverse geocoding with a fixed address."""

    def __init__(self, address: str | None = "Broadway, Manhattan, New York") -> None:
        self.address = address
        self.calls: list[list[str]] = []

    async def resolve_cells(self, cells) -> LocationInfo:
        self.calls.append([str(c) for c in cells])
        return LocationInfo(lng=-73.98, lat=40.75, address=self.address)


class Session:
    """One player's client-side stack wired to an in-process store."""

    def __init__(self, http: httpx.AsyncClient, user: str, resolver: StaticResolver | None = None):
        self.user = user
        self.addressor = GridAddressor()
        self.store = PropertyStoreClient(store_config(), auth_token=user, http=http)
        self.reconciler = OwnershipReconciler(self.store, self.addressor, current_user_id=user)
        self.resolver = resolver or StaticResolver()
        self.pricing = PricingService(
            self.resolver,
            PriceLookup(PricingConfig(base_url=STORE_URL), http=http),
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def addressor() -> GridAddressor:
    return GridAddressor()


@pytest.fixture
def price_table(tmp_path) -> PriceTable:
    path = tmp_path / "pricing.yml"
    path.write_text(PRICING_YAML)
    return PriceTable(path, default_price=1.0)


@pytest.fixture
def registry() -> LandRegistry:
    registry = LandRegistry(starting_tokens=10.0)
    for uid in ("alice", "bob"):
        registry.register_user(uid, email=f"{uid}@example.com", name=uid.title())
    return registry


@pytest.fixture
def app(registry, price_table):
    return create_app(settings=Settings(), registry=registry, price_table=price_table)


def buy_directly(registry: LandRegistry, owner: str, prop_id: str, cells: list[str], price: float = 0.0):
    """Commit a purchase on the server side, bypassing any client."""
    return registry.buy_unallocated(
        owner, PropertyDraft(id=prop_id, owner=owner, cells=cells, price=price)
    )

