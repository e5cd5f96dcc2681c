"""Tests for reverse geocoding, price lookup and the server price table."""

from __future__ import annotations

import re

import httpx
import pytest

from landgrid.core.config import GeocoderConfig, GridConfig, PricingConfig
from landgrid.core.errors import RemoteUnavailable
from landgrid.grid.addressing import GridAddressor
from landgrid.pricing.location import LocationResolver, parse_geocoding_response
from landgrid.pricing.lookup import PriceLookup, PricingService
from landgrid.store.pricing import PriceTable


GEO_URL = "https://geo.test"
PRICING_URL = "http://pricing.test/api"
GEOCODE_RE = re.compile(r"https://geo\.test/geocoding/v5/mapbox\.places/.*\.json.*")
PRICING_RE = re.compile(r"http://pricing\.test/api/pricing\?.*")

GEOCODE_RESPONSE = {
    "features": [
        {"place_type": ["address"], "place_name": "1560 Broadway, Manhattan, New York", "text": "Broadway"},
        {"place_type": ["neighborhood"], "text": "Theater District"},
        {"place_type": ["postcode"], "text": "10036"},
        {"place_type": ["place"], "text": "New York"},
        {"place_type": ["region"], "text": "New York"},
        {"place_type": ["country"], "text": "United States"},
    ]
}


def _resolver(**kwargs) -> LocationResolver:
    return LocationResolver(
        GeocoderConfig(base_url=GEO_URL, access_token="tok"),
        GridAddressor(GridConfig(size_lng=1.0, size_lat=1.0)),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Reverse geocoding
# ---------------------------------------------------------------------------


class TestParseGeocoding:
    def test_extracts_every_level(self):
        info = parse_geocoding_response(1.0, 2.0, GEOCODE_RESPONSE)
        assert info.address == "1560 Broadway, Manhattan, New York"
        assert info.neighborhood == "Theater District"
        assert info.postcode == "10036"
        assert info.place == "New York"
        assert info.country == "United States"
        assert info.label == info.address

    def test_label_falls_back_to_areas(self):
        info = parse_geocoding_response(0, 0, {"features": [
            {"place_type": ["place"], "text": "Springfield"},
            {"place_type": ["country"], "text": "United States"},
        ]})
        assert info.address is None
        assert info.label == "Springfield, United States"

    def test_label_none_when_nothing_found(self):
        assert parse_geocoding_response(0, 0, {}).label is None


class TestLocationResolver:
    @pytest.mark.asyncio
    async def test_resolve_cells_queries_selection_center(self, httpx_mock):
        httpx_mock.add_response(url=GEOCODE_RE, method="GET", json=GEOCODE_RESPONSE)
        resolver = _resolver()
        try:
            info = await resolver.resolve_cells(["0,0", "2,4"])
        finally:
            await resolver.close()
        assert (info.lng, info.lat) == (1.0, 2.0)
        request = httpx_mock.get_request()
        assert request.url.path == "/geocoding/v5/mapbox.places/1.0,2.0.json"
        assert request.url.params["access_token"] == "tok"
        assert "address" in request.url.params["types"].split(",")

    @pytest.mark.asyncio
    async def test_resolve_cells_requires_valid_cell(self):
        resolver = _resolver()
        try:
            with pytest.raises(ValueError):
                await resolver.resolve_cells(["bad"])
        finally:
            await resolver.close()

    @pytest.mark.asyncio
    async def test_http_error_becomes_remote_unavailable(self, httpx_mock):
        httpx_mock.add_response(url=GEOCODE_RE, method="GET", status_code=401)
        resolver = _resolver()
        try:
            with pytest.raises(RemoteUnavailable):
                await resolver.resolve(1.0, 2.0)
        finally:
            await resolver.close()

    @pytest.mark.asyncio
    async def test_non_json_becomes_remote_unavailable(self, httpx_mock):
        httpx_mock.add_response(url=GEOCODE_RE, method="GET", text="<html>")
        resolver = _resolver()
        try:
            with pytest.raises(RemoteUnavailable):
                await resolver.resolve(1.0, 2.0)
        finally:
            await resolver.close()


# ---------------------------------------------------------------------------
# Price lookup
# ---------------------------------------------------------------------------


class TestPriceLookup:
    @pytest.mark.asyncio
    async def test_price_per_cell(self, httpx_mock):
        httpx_mock.add_response(url=PRICING_RE, method="GET", json={"pricePerCell": 5})
        lookup = PriceLookup(PricingConfig(base_url=PRICING_URL))
        try:
            assert await lookup.price_per_cell("Broadway, Manhattan") == 5.0
        finally:
            await lookup.close()
        assert httpx_mock.get_request().url.params["address"] == "Broadway, Manhattan"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{}, {"pricePerCell": "lots"}, {"pricePerCell": -1}])
    async def test_malformed_or_negative_price(self, httpx_mock, payload):
        httpx_mock.add_response(url=PRICING_RE, method="GET", json=payload)
        lookup = PriceLookup(PricingConfig(base_url=PRICING_URL))
        try:
            with pytest.raises(RemoteUnavailable):
                await lookup.price_per_cell("Main St")
        finally:
            await lookup.close()

    @pytest.mark.asyncio
    async def test_connection_error(self, httpx_mock):
        httpx_mock.add_exception(httpx.ConnectError("down"), url=PRICING_RE)
        lookup = PriceLookup(PricingConfig(base_url=PRICING_URL))
        try:
            with pytest.raises(RemoteUnavailable):
                await lookup.price_per_cell("Main St")
        finally:
            await lookup.close()


class TestPricingService:
    @pytest.mark.asyncio
    async def test_quote_uses_resolved_label(self, httpx_mock):
        httpx_mock.add_response(url=GEOCODE_RE, method="GET", json=GEOCODE_RESPONSE)
        httpx_mock.add_response(url=PRICING_RE, method="GET", json={"pricePerCell": 5})
        resolver = _resolver()
        lookup = PriceLookup(PricingConfig(base_url=PRICING_URL))
        try:
            quote = await PricingService(resolver, lookup).quote(["0,0"])
        finally:
            await resolver.close()
            await lookup.close()
        assert quote.base_price == 5.0
        assert quote.address == "1560 Broadway, Manhattan, New York"
        assert quote.location.postcode == "10036"

    @pytest.mark.asyncio
    async def test_quote_without_address_fails(self, httpx_mock):
        httpx_mock.add_response(url=GEOCODE_RE, method="GET", json={"features": []})
        resolver = _resolver()
        lookup = PriceLookup(PricingConfig(base_url=PRICING_URL))
        try:
            with pytest.raises(RemoteUnavailable, match="No address"):
                await PricingService(resolver, lookup).quote(["0,0"])
        finally:
            await resolver.close()
            await lookup.close()


# ---------------------------------------------------------------------------
# Server price table
# ---------------------------------------------------------------------------


class TestPriceTable:
    def test_first_matching_rule_wins(self, price_table):
        assert price_table.price_for("5th Ave, Manhattan, Brooklyn?") == 5.0

    def test_match_is_case_insensitive(self, price_table):
        assert price_table.price_for("flatbush ave, BROOKLYN") == 2.0

    def test_default_when_nothing_matches(self, price_table):
        assert price_table.price_for("Springfield") == 1.0

    def test_packaged_table_loads(self):
        table = PriceTable(default_price=3.0)
        assert table.rules
        assert table.price_for("Nowhere in particular") == 3.0

    def test_negative_rule_rejected(self, tmp_path):
        path = tmp_path / "pricing.yml"
        path.write_text("rules:\n  - match: X\n    price: -1\n")
        with pytest.raises(ValueError):
            PriceTable(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "pricing.yml"
        path.write_text("")
        assert PriceTable(path, default_price=2.5).price_for("anything") == 2.5
