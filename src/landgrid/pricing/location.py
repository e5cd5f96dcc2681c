"""Reverse geocoding of a selection via a Mapbox-compatible API."""

from __future__ import annotations

import logging
from typing import Any, Iterable

import httpx
from pydantic import BaseModel, Field

from landgrid.core.config import GeocoderConfig
from landgrid.core.errors import RemoteUnavailable
from landgrid.grid.addressing import CellId, GridAddressor

logger = logging.getLogger(__name__)

_PLACE_TYPES = ("address", "place", "neighborhood", "postcode", "region", "country")


class LocationInfo(BaseModel):
    """What the geocoder knows about one point."""

    lng: float
    lat: float
    address: str | None = None
    place: str | None = None
    neighborhood: str | None = None
    postcode: str | None = None
    region: str | None = None
    country: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    @property
    def label(self) -> str | None:
        """Most specific human-readable description available."""
        if self.address:
            return self.address
        parts = [p for p in (self.neighborhood, self.place, self.region, self.country) if p]
        return ", ".join(parts) or None


def parse_geocoding_response(lng: float, lat: float, data: dict[str, Any]) -> LocationInfo:
    info = LocationInfo(lng=lng, lat=lat, raw=data)
    for feature in data.get("features", []):
        place_types = feature.get("place_type", [])
        if "address" in place_types:
            info.address = feature.get("place_name")
        elif "place" in place_types:
            info.place = feature.get("text")
        elif "neighborhood" in place_types:
            info.neighborhood = feature.get("text")
        elif "postcode" in place_types:
            info.postcode = feature.get("text")
        elif "region" in place_types:
            info.region = feature.get("text")
        elif "country" in place_types:
            info.country = feature.get("text")
    return info


class LocationResolver:
    """Resolves the center of a set of cells to a LocationInfo."""

    def __init__(
        self,
        config: GeocoderConfig | None = None,
        addressor: GridAddressor | None = None,
        *,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or GeocoderConfig()
        self._addressor = addressor or GridAddressor()
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=httpx.Timeout(self.config.timeout_seconds),
        )

    async def resolve(self, lng: float, lat: float) -> LocationInfo:
        params = {
            "access_token": self.config.access_token,
            "types": ",".join(_PLACE_TYPES),
        }
        try:
            resp = await self._http.get(
                f"/geocoding/v5/mapbox.places/{lng},{lat}.json", params=params
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"Reverse geocoding failed: {exc}", exc) from exc
        except ValueError as exc:
            raise RemoteUnavailable(f"Malformed geocoding response: {exc}", exc) from exc
        return parse_geocoding_response(lng, lat, data)

    async def resolve_cells(self, cells: Iterable[CellId | str]) -> LocationInfo:
        center = self._addressor.center_of_cells(cells)
        if center is None:
            raise ValueError("No valid cells to locate")
        logger.debug("Locating selection centered at %.7f, %.7f", *center)
        return await self.resolve(*center)

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()
