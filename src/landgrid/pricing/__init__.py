"""Location-based pricing of selections."""

from landgrid.pricing.location import LocationInfo, LocationResolver
from landgrid.pricing.lookup import PriceLookup, PriceQuote, PricingService

__all__ = ["LocationInfo", "LocationResolver", "PriceLookup", "PriceQuote", "PricingService"]
