"""Market operations on already-owned parcels: listings, resale and bids.

Every mutation goes to the Property Store and is followed by an ownership
refresh so the map reflects the new owner or listing. Failures are turned
into error notices and a ``None`` result, or an empty list for reads.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from pydantic import ValidationError

from landgrid.core.errors import (
    InsufficientBalance,
    LandGridError,
    NotFound,
    RemoteUnavailable,
    Unauthenticated,
)
from landgrid.core.types import BidStatus
from landgrid.notices.board import NoticeSink
from landgrid.notices.models import Notice, NoticeLevel
from landgrid.ownership.reconciler import OwnershipReconciler
from landgrid.properties.client import PropertyStoreClient
from landgrid.properties.models import BidMade, BidReceived, Property, PropertyUpdate

logger = logging.getLogger(__name__)

_BID_ACTIONS = {
    BidStatus.ACCEPTED: "accept bid",
    BidStatus.DECLINED: "decline bid",
    BidStatus.CANCELLED: "cancel bid",
}


class MarketService:
    def __init__(
        self,
        store: PropertyStoreClient,
        reconciler: OwnershipReconciler,
        *,
        notices: NoticeSink | None = None,
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._notices = notices

    # -- listings ------------------------------------------------------------

    async def update_property(self, property_id: str, update: PropertyUpdate) -> Property | None:
        return await self._mutate(
            "update property",
            lambda: self._store.update_property(property_id, update),
            "Property updated successfully",
        )

    async def list_for_sale(self, property_id: str, sale_price: float) -> Property | None:
        if sale_price <= 0:
            raise ValueError(f"Sale price must be positive, got {sale_price}")
        return await self._mutate(
            "list property",
            lambda: self._store.update_property(
                property_id, PropertyUpdate(for_sale=True, sale_price=sale_price)
            ),
            f"Property listed for {sale_price:g} tokens",
        )

    async def unlist(self, property_id: str) -> Property | None:
        return await self._mutate(
            "unlist property",
            lambda: self._store.update_property(property_id, PropertyUpdate(for_sale=False)),
            "Property removed from sale",
        )

    async def buy_listed(self, property_id: str) -> Property | None:
        """Buy a parcel somebody else listed, checking the balance fresh."""
        listing = next(
            (p for p in self._reconciler.snapshot if p.id == property_id), None
        )

        async def purchase() -> Property:
            profile = await self._store.get_profile()
            if listing is not None and listing.for_sale and listing.sale_price is not None:
                if profile.tokens < listing.sale_price:
                    raise InsufficientBalance(listing.sale_price, profile.tokens)
            return await self._store.buy_listed(property_id)

        return await self._mutate("buy property", purchase, "Property purchased successfully")

    # -- bids ----------------------------------------------------------------

    async def place_bid(
        self, property_id: str, amount: float, message: str | None = None
    ) -> Property | None:
        if amount <= 0:
            raise ValueError(f"Bid amount must be positive, got {amount}")
        return await self._mutate(
            "place bid",
            lambda: self._store.create_bid(property_id, amount, message),
            f"Bid of {amount:g} tokens placed",
        )

    async def respond_to_bid(
        self,
        property_id: str,
        status: BidStatus,
        bidder_id: str | None = None,
    ) -> Property | None:
        """Owner accepts or declines ``bidder_id``'s bid; a bidder cancels their own."""
        if status is BidStatus.ACTIVE:
            raise ValueError("A bid cannot be set back to active")
        return await self._mutate(
            _BID_ACTIONS[status],
            lambda: self._store.update_bid_status(property_id, status, bidder_id),
            f"Bid {status}",
        )

    async def accept_bid(self, property_id: str, bidder_id: str) -> Property | None:
        return await self.respond_to_bid(property_id, BidStatus.ACCEPTED, bidder_id)

    async def decline_bid(self, property_id: str, bidder_id: str) -> Property | None:
        return await self.respond_to_bid(property_id, BidStatus.DECLINED, bidder_id)

    async def cancel_bid(self, property_id: str) -> Property | None:
        return await self.respond_to_bid(property_id, BidStatus.CANCELLED)

    async def bids_made(self) -> list[BidMade]:
        try:
            return await self._store.bids_made()
        except (LandGridError, ValidationError) as exc:
            logger.warning("Failed to load bids made: %s", exc)
            self._error("Failed to load your bids")
            return []

    async def bids_received(self) -> list[BidReceived]:
        try:
            return await self._store.bids_received()
        except (LandGridError, ValidationError) as exc:
            logger.warning("Failed to load bids received: %s", exc)
            self._error("Failed to load bids on your properties")
            return []

    # -- internal ------------------------------------------------------------

    async def _mutate(
        self,
        action: str,
        call: Callable[[], Awaitable[Property]],
        success_message: str,
    ) -> Property | None:
        try:
            result = await call()
        except InsufficientBalance as exc:
            self._error(f"Insufficient tokens. You need {exc.required:g} tokens")
            return None
        except Unauthenticated:
            self._error(f"You must be logged in to {action}")
            return None
        except NotFound:
            self._error("Property not found")
            return None
        except RemoteUnavailable as exc:
            logger.warning("Failed to %s: %s", action, exc)
            self._error(f"Failed to {action}. Please try again.")
            return None
        except (LandGridError, ValidationError) as exc:
            logger.warning("Store refused to %s: %s", action, exc)
            self._error(f"Failed to {action}")
            return None

        logger.info("Market: %s on %s succeeded", action, result.id)
        await self._reconciler.refresh(reason=action)
        self._publish(NoticeLevel.SUCCESS, "Success", success_message, property_id=result.id)
        return result

    def _error(self, message: str) -> None:
        self._publish(NoticeLevel.ERROR, "Error", message)

    def _publish(self, level: NoticeLevel, title: str, message: str, **metadata) -> None:
        if self._notices is not None:
            self._notices.publish(
                Notice(level=level, title=title, message=message, metadata=metadata)
            )
