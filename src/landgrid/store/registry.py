"""In-memory Property Store used by the development server and tests.

The registry is the authority for "a cell belongs to at most one
property": every commit checks the requested cells against the
cell -> property map and either applies completely or not at all.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable

from landgrid.core.errors import (
    InsufficientBalance,
    NotFound,
    OwnershipConflict,
    StoreRejected,
)
from landgrid.core.types import BidStatus
from landgrid.grid.addressing import deserialize, serialize
from landgrid.properties.models import (
    Bid,
    BidMade,
    BidReceived,
    Property,
    PropertyDraft,
    PropertyUpdate,
    PurchaseReceipt,
    Treasure,
    TreasureDiscovery,
    UserProfile,
)

logger = logging.getLogger(__name__)


def canonical_cells(cells: Iterable[str]) -> list[str]:
    """Parse and re-serialize cell ids, dropping duplicates but keeping order.

    Raises ParseError on the first malformed entry.
    """
    seen: dict[str, None] = {}
    for raw in cells:
        seen.setdefault(serialize(deserialize(raw)), None)
    return list(seen)


class LandRegistry:
    """Users, properties and treasures held in process memory.

    Args:
        starting_tokens: Balance given to newly registered users.
        clock: Returns the current time; used for treasure expiry.
    """

    def __init__(
        self,
        starting_tokens: float = 10.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.starting_tokens = starting_tokens
        self._clock = clock
        self._users: dict[str, UserProfile] = {}
        self._properties: dict[str, Property] = {}
        self._cell_owner: dict[str, str] = {}
        self._treasures: dict[str, Treasure] = {}

    # -- users ---------------------------------------------------------------

    def register_user(self, uid: str, email: str = "", name: str = "") -> UserProfile:
        """Create a profile; registering an existing uid returns it unchanged."""
        existing = self._users.get(uid)
        if existing is not None:
            return existing
        user = UserProfile(uid=uid, email=email, name=name, tokens=self.starting_tokens)
        self._users[uid] = user
        logger.info("Registered user %s with %g tokens", uid, user.tokens)
        return user

    def get_user(self, uid: str) -> UserProfile:
        user = self._users.get(uid)
        if user is None:
            raise NotFound(f"User profile not found: {uid}")
        return user

    def list_users(self) -> list[UserProfile]:
        return list(self._users.values())

    # -- properties ----------------------------------------------------------

    def list_properties(self) -> list[Property]:
        return list(self._properties.values())

    def properties_of(self, owner: str) -> list[Property]:
        return [p for p in self._properties.values() if p.owner == owner]

    def get_property(self, property_id: str) -> Property:
        prop = self._properties.get(property_id)
        if prop is None:
            raise NotFound(f"Property not found: {property_id}")
        return prop

    def owner_of_cell(self, cell: str) -> Property | None:
        property_id = self._cell_owner.get(serialize(deserialize(cell)))
        return self._properties.get(property_id) if property_id else None

    def owned_cells(self, cells: Iterable[str]) -> list[str]:
        return sorted(c for c in canonical_cells(cells) if c in self._cell_owner)

    def buy_unallocated(self, buyer_id: str, draft: PropertyDraft) -> PurchaseReceipt:
        """Atomic purchase of cells nobody owns yet.

        Validates everything before mutating: cell syntax, non-empty
        selection, ownership of every cell, and the buyer's balance.
        """
        buyer = self.get_user(buyer_id)
        if draft.owner and draft.owner != buyer_id:
            raise StoreRejected(403, "Cannot buy property on behalf of another user")
        if draft.id in self._properties:
            raise StoreRejected(400, f"Property id already exists: {draft.id}")
        if draft.price < 0:
            raise StoreRejected(400, "Price must not be negative")

        cells = canonical_cells(draft.cells)
        if not cells:
            raise StoreRejected(400, "No cells selected")
        conflicts = [c for c in cells if c in self._cell_owner]
        if conflicts:
            logger.info(
                "Purchase %s by %s rejected: %d cells already owned",
                draft.id, buyer_id, len(conflicts),
            )
            raise OwnershipConflict(conflicts)
        if buyer.tokens < draft.price:
            raise InsufficientBalance(draft.price, buyer.tokens)

        buyer.tokens -= draft.price
        prop = Property(
            id=draft.id,
            owner=buyer_id,
            cells=cells,
            price=draft.price,
            name=draft.name,
            description=draft.description,
            address=draft.address,
        )
        self._properties[prop.id] = prop
        for cell in cells:
            self._cell_owner[cell] = prop.id
        logger.info(
            "Property %s created for %s: %d cells, %g tokens",
            prop.id, buyer_id, len(cells), draft.price,
        )

        discovery = self._redeem_treasure(buyer, cells)
        return PurchaseReceipt(
            property=prop, is_treasure=discovery is not None, treasure=discovery
        )

    def update_property(self, user_id: str, property_id: str, update: PropertyUpdate) -> Property:
        prop = self.get_property(property_id)
        if prop.owner != user_id:
            raise StoreRejected(403, "Only the owner can update this property")

        changes = update.model_dump(exclude_none=True)
        for_sale = changes.get("for_sale", prop.for_sale)
        sale_price = changes.get("sale_price", prop.sale_price)
        if for_sale and (sale_price is None or sale_price <= 0):
            raise StoreRejected(400, "A listed property needs a positive sale price")

        for field in ("name", "description", "address"):
            if field in changes:
                setattr(prop, field, changes[field])
        prop.for_sale = for_sale
        prop.sale_price = sale_price if for_sale else None
        return prop

    def buy_listed(self, buyer_id: str, property_id: str) -> Property:
        """Transfer a listed property to ``buyer_id`` at its sale price."""
        prop = self.get_property(property_id)
        buyer = self.get_user(buyer_id)
        if not prop.for_sale or prop.sale_price is None:
            raise StoreRejected(400, "Property is not for sale")
        if prop.owner == buyer_id:
            raise StoreRejected(400, "You already own this property")
        if buyer.tokens < prop.sale_price:
            raise InsufficientBalance(prop.sale_price, buyer.tokens)

        self._transfer(prop, buyer, prop.sale_price)
        for bid in prop.bids:
            if bid.status is BidStatus.ACTIVE:
                bid.status = BidStatus.DECLINED
        return prop

    # -- bids ----------------------------------------------------------------

    def place_bid(
        self,
        bidder_id: str,
        property_id: str,
        amount: float,
        message: str | None = None,
    ) -> Property:
        prop = self.get_property(property_id)
        bidder = self.get_user(bidder_id)
        if prop.owner == bidder_id:
            raise StoreRejected(400, "Cannot bid on your own property")
        if amount <= 0:
            raise StoreRejected(400, "Bid amount must be positive")
        if bidder.tokens < amount:
            raise InsufficientBalance(amount, bidder.tokens)

        # One active bid per bidder; a new bid replaces the previous one.
        for bid in prop.bids:
            if bid.bidder_id == bidder_id and bid.status is BidStatus.ACTIVE:
                bid.status = BidStatus.CANCELLED
        prop.bids.append(Bid(bidder_id=bidder_id, amount=amount, message=message))
        return prop

    def update_bid_status(
        self,
        user_id: str,
        property_id: str,
        status: BidStatus,
        bidder_id: str | None = None,
    ) -> Property:
        """Owner accepts or declines a bid; a bidder cancels their own."""
        prop = self.get_property(property_id)
        if status is BidStatus.ACTIVE:
            raise StoreRejected(400, "A bid cannot be reactivated")

        if status is BidStatus.CANCELLED:
            bid = self._active_bid(prop, bidder_id or user_id)
            if bid.bidder_id != user_id:
                raise StoreRejected(403, "Only the bidder can cancel a bid")
            bid.status = BidStatus.CANCELLED
            return prop

        if prop.owner != user_id:
            raise StoreRejected(403, "Only the owner can respond to bids")
        if not bidder_id:
            raise StoreRejected(400, "bidderId is required")
        bid = self._active_bid(prop, bidder_id)

        if status is BidStatus.DECLINED:
            bid.status = BidStatus.DECLINED
            return prop

        buyer = self.get_user(bidder_id)
        if buyer.tokens < bid.amount:
            raise InsufficientBalance(bid.amount, buyer.tokens)
        self._transfer(prop, buyer, bid.amount)
        bid.status = BidStatus.ACCEPTED
        for other in prop.bids:
            if other is not bid and other.status is BidStatus.ACTIVE:
                other.status = BidStatus.DECLINED
        return prop

    def bids_made(self, user_id: str) -> list[BidMade]:
        return [
            BidMade(
                property_id=prop.id,
                property_name=prop.name,
                property_owner=prop.owner,
                bid=bid,
            )
            for prop in self._properties.values()
            for bid in prop.bids
            if bid.bidder_id == user_id
        ]

    def bids_received(self, user_id: str) -> list[BidReceived]:
        return [
            BidReceived(property_id=prop.id, property_name=prop.name, bid=bid)
            for prop in self.properties_of(user_id)
            for bid in prop.bids
        ]

    # -- treasures -----------------------------------------------------------

    def add_treasure(self, treasure: Treasure, created_by: str | None = None) -> Treasure:
        cells = canonical_cells(treasure.cells)
        if not cells:
            raise StoreRejected(400, "A treasure needs at least one cell")
        if treasure.reward_amount < 0:
            raise StoreRejected(400, "Reward amount must not be negative")
        expires_at = treasure.expires_at
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        stored = treasure.model_copy(
            update={
                "id": treasure.id or str(uuid.uuid4()),
                "cells": cells,
                "expires_at": expires_at,
                "redemptions": 0,
                "created_by": created_by or treasure.created_by,
            }
        )
        self._treasures[stored.id] = stored
        logger.info("Treasure %s hidden in %d cells", stored.id, len(cells))
        return stored

    def list_treasures(self) -> list[Treasure]:
        return list(self._treasures.values())

    # -- internal ------------------------------------------------------------

    def _active_bid(self, prop: Property, bidder_id: str) -> Bid:
        for bid in prop.bids:
            if bid.bidder_id == bidder_id and bid.status is BidStatus.ACTIVE:
                return bid
        raise NotFound(f"No active bid from {bidder_id} on {prop.id}")

    def _transfer(self, prop: Property, buyer: UserProfile, amount: float) -> None:
        seller = self._users.get(prop.owner)
        buyer.tokens -= amount
        if seller is not None:
            seller.tokens += amount
        logger.info(
            "Property %s transferred from %s to %s for %g tokens",
            prop.id, prop.owner, buyer.uid, amount,
        )
        prop.owner = buyer.uid
        prop.for_sale = False
        prop.sale_price = None

    def _redeem_treasure(self, buyer: UserProfile, cells: list[str]) -> TreasureDiscovery | None:
        """Redeem the first active treasure overlapping ``cells``."""
        now = self._clock()
        bought = set(cells)
        for treasure in self._treasures.values():
            if treasure.expires_at is not None and treasure.expires_at <= now:
                continue
            if treasure.redemptions >= treasure.max_redemptions:
                continue
            overlapping = [c for c in treasure.cells if c in bought]
            if not overlapping:
                continue

            treasure.redemptions += 1
            if treasure.reward_type == "tokens":
                buyer.tokens += treasure.reward_amount
            logger.info(
                "Treasure %s redeemed by %s: %g %s",
                treasure.id, buyer.uid, treasure.reward_amount, treasure.reward_type,
            )
            return TreasureDiscovery(
                id=treasure.id or "",
                name=treasure.name,
                description=treasure.description,
                reward_type=treasure.reward_type,
                reward_amount=treasure.reward_amount,
                reward_message=treasure.reward_message,
                treasure_cells=list(treasure.cells),
                overlapping_cells=overlapping,
            )
        return None
