"""Listings, resale and bids."""

from landgrid.market.service import MarketService

__all__ = ["MarketService"]
