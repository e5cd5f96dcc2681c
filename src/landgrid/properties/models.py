"""Property Store data models.

Every record crossing the store boundary is validated into one of these
models; optional fields accumulated over the life of the API are explicit
here rather than free-form dict keys.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import Field

from landgrid.core.types import BidStatus, WireModel


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Bid(WireModel):
    """A bid placed on somebody else's property."""

    bidder_id: str | None = None
    amount: float
    message: str | None = None
    status: BidStatus = BidStatus.ACTIVE
    created_at: datetime = Field(default_factory=_now)


class Property(WireModel):
    """Server-authoritative unit of ownership."""

    id: str
    owner: str
    cells: list[str] = Field(default_factory=list)
    price: float = 0.0
    name: str | None = None
    description: str | None = None
    address: str | None = None
    for_sale: bool = False
    sale_price: float | None = None
    bids: list[Bid] = Field(default_factory=list)


class PropertyDraft(WireModel):
    """Body of the atomic purchase commit."""

    id: str
    owner: str
    cells: list[str]
    price: float
    name: str | None = None
    description: str | None = None
    address: str | None = None


class PropertyUpdate(WireModel):
    """Owner-authorized metadata and listing update."""

    name: str | None = None
    description: str | None = None
    address: str | None = None
    for_sale: bool | None = None
    sale_price: float | None = None


class TreasureDiscovery(WireModel):
    """Reward found as a side effect of buying overlapping cells."""

    id: str
    name: str
    description: str = ""
    reward_type: str
    reward_amount: float
    reward_message: str = ""
    treasure_cells: list[str] = Field(default_factory=list)
    overlapping_cells: list[str] = Field(default_factory=list)


class Treasure(WireModel):
    """Server-defined reward attached to specific cells."""

    id: str | None = None
    name: str
    description: str = ""
    cells: list[str]
    reward_type: str = "tokens"
    reward_amount: float = 0.0
    reward_message: str = ""
    max_redemptions: int = 1
    redemptions: int = 0
    expires_at: datetime | None = None
    created_by: str | None = None


class PurchaseReceipt(WireModel):
    """Response of the purchase commit."""

    property: Property
    is_treasure: bool = False
    treasure: TreasureDiscovery | None = None


class UserProfile(WireModel):
    """Identity and token balance of a player."""

    uid: str
    email: str = ""
    name: str = ""
    tokens: float = 0.0


class BidMade(WireModel):
    """One entry of ``GET /properties/bids/made``."""

    property_id: str
    property_name: str | None = None
    property_owner: str
    bid: Bid


class BidReceived(WireModel):
    """One entry of ``GET /properties/bids/received``."""

    property_id: str
    property_name: str | None = None
    bid: Bid
