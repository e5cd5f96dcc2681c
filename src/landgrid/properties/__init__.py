"""Property Store models and client."""

from landgrid.properties.client import PropertyStoreClient
from landgrid.properties.models import (
    Bid,
    Property,
    PropertyDraft,
    PropertyUpdate,
    PurchaseReceipt,
    Treasure,
    TreasureDiscovery,
    UserProfile,
)

__all__ = [
    "Bid",
    "Property",
    "PropertyDraft",
    "PropertyStoreClient",
    "PropertyUpdate",
    "PurchaseReceipt",
    "Treasure",
    "TreasureDiscovery",
    "UserProfile",
]
