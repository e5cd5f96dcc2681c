"""Per-cell base price lookup keyed on a resolved address."""

from __future__ import annotations

import logging
from typing import Iterable

import httpx
from pydantic import BaseModel

from landgrid.core.config import PricingConfig
from landgrid.core.errors import RemoteUnavailable
from landgrid.grid.addressing import CellId
from landgrid.pricing.location import LocationInfo, LocationResolver

logger = logging.getLogger(__name__)


class PriceQuote(BaseModel):
    """Base price per cell for a selection and where it was priced."""

    base_price: float
    address: str | None = None
    location: LocationInfo | None = None


class PriceLookup:
    """Calls the external pricing endpoint: ``GET /pricing?address=...``."""

    def __init__(
        self,
        config: PricingConfig | None = None,
        *,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or PricingConfig()
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=httpx.Timeout(self.config.timeout_seconds),
        )

    async def price_per_cell(self, address: str) -> float:
        try:
            resp = await self._http.get("/pricing", params={"address": address})
            resp.raise_for_status()
            price = float(resp.json()["pricePerCell"])
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"Price lookup failed: {exc}", exc) from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise RemoteUnavailable(f"Malformed price lookup response: {exc}", exc) from exc
        if price < 0:
            raise RemoteUnavailable(f"Negative price {price} for {address!r}")
        return price

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()


class PricingService:
    """Locates a selection and prices it per cell."""

    def __init__(self, resolver: LocationResolver, lookup: PriceLookup) -> None:
        self._resolver = resolver
        self._lookup = lookup

    async def quote(self, cells: Iterable[CellId | str]) -> PriceQuote:
        """Raises RemoteUnavailable if either lookup fails."""
        location = await self._resolver.resolve_cells(cells)
        address = location.label
        if address is None:
            raise RemoteUnavailable(
                f"No address found near {location.lng:.6f}, {location.lat:.6f}"
            )
        price = await self._lookup.price_per_cell(address)
        logger.info("Priced selection at %s: %g tokens per cell", address, price)
        return PriceQuote(base_price=price, address=address, location=location)
