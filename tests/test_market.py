"""End-to-end tests for listings, resale and bids."""

from __future__ import annotations

import pytest

from landgrid.core.types import BidStatus
from landgrid.market.service import MarketService
from landgrid.notices.board import NoticeBoard
from landgrid.notices.models import NoticeLevel
from landgrid.ownership.reconciler import OwnershipReconciler
from landgrid.properties.client import PropertyStoreClient
from landgrid.properties.models import PropertyUpdate
from tests.conftest import Session, asgi_client, buy_directly, store_config


def _market(session: Session, notices: NoticeBoard | None = None) -> MarketService:
    return MarketService(session.store, session.reconciler, notices=notices)


@pytest.fixture
def parcel(registry):
    return buy_directly(registry, "alice", "corner", ["10,10", "10,11"], price=2.0).property


class TestListings:
    @pytest.mark.asyncio
    async def test_owner_lists_and_map_refreshes(self, app, parcel):
        notices = NoticeBoard()
        async with asgi_client(app) as http:
            alice = Session(http, "alice")
            market = _market(alice, notices)
            listed = await market.list_for_sale("corner", 6.0)
            assert listed.for_sale is True
            assert listed.sale_price == 6.0
            # viewed by bob the parcel is now yellow
            features = alice.reconciler.render_features("bob")
        assert {f.fill_color for f in features} == {"#FFC107"}
        assert notices.by_level(NoticeLevel.SUCCESS)

    @pytest.mark.asyncio
    async def test_non_owner_cannot_update(self, app, parcel, registry):
        notices = NoticeBoard()
        async with asgi_client(app) as http:
            market = _market(Session(http, "bob"), notices)
            result = await market.update_property("corner", PropertyUpdate(name="Mine now"))
        assert result is None
        assert registry.get_property("corner").name is None
        assert notices.by_level(NoticeLevel.ERROR)

    @pytest.mark.asyncio
    async def test_unlist(self, app, parcel):
        async with asgi_client(app) as http:
            market = _market(Session(http, "alice"))
            await market.list_for_sale("corner", 6.0)
            result = await market.unlist("corner")
        assert result.for_sale is False
        assert result.sale_price is None

    @pytest.mark.asyncio
    async def test_invalid_sale_price(self, app, parcel):
        async with asgi_client(app) as http:
            market = _market(Session(http, "alice"))
            with pytest.raises(ValueError):
                await market.list_for_sale("corner", 0)


class TestBuyListed:
    @pytest.mark.asyncio
    async def test_buyer_pays_seller(self, app, parcel, registry):
        async with asgi_client(app) as http:
            await _market(Session(http, "alice")).list_for_sale("corner", 6.0)
            bob = Session(http, "bob")
            await bob.reconciler.refresh()
            bought = await _market(bob).buy_listed("corner")
            assert bob.reconciler.owner_of("10,10").owner == "bob"
        assert bought.owner == "bob"
        assert bought.for_sale is False
        assert registry.get_user("bob").tokens == 4.0
        assert registry.get_user("alice").tokens == 14.0

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, app, parcel, registry):
        notices = NoticeBoard()
        async with asgi_client(app) as http:
            await _market(Session(http, "alice")).list_for_sale("corner", 60.0)
            bob = Session(http, "bob")
            await bob.reconciler.refresh()
            result = await _market(bob, notices).buy_listed("corner")
        assert result is None
        assert registry.get_property("corner").owner == "alice"
        assert "60" in notices.by_level(NoticeLevel.ERROR)[0].message

    @pytest.mark.asyncio
    async def test_not_for_sale(self, app, parcel, registry):
        async with asgi_client(app) as http:
            result = await _market(Session(http, "bob")).buy_listed("corner")
        assert result is None
        assert registry.get_user("bob").tokens == 10.0


class TestBids:
    @pytest.mark.asyncio
    async def test_accepting_transfers_and_declines_others(self, app, parcel, registry):
        registry.register_user("carol")
        async with asgi_client(app) as http:
            await _market(Session(http, "bob")).place_bid("corner", 4.0, "please")
            await _market(Session(http, "carol")).place_bid("corner", 3.0)

            alice = _market(Session(http, "alice"))
            received = await alice.bids_received()
            assert sorted(b.bid.bidder_id for b in received) == ["bob", "carol"]

            result = await alice.accept_bid("corner", "bob")

        assert result.owner == "bob"
        statuses = {b.bidder_id: b.status for b in result.bids}
        assert statuses == {"bob": BidStatus.ACCEPTED, "carol": BidStatus.DECLINED}
        assert registry.get_user("bob").tokens == 6.0
        assert registry.get_user("alice").tokens == 12.0

    @pytest.mark.asyncio
    async def test_decline_and_bids_made(self, app, parcel):
        async with asgi_client(app) as http:
            bob = _market(Session(http, "bob"))
            await bob.place_bid("corner", 4.0)
            declined = await _market(Session(http, "alice")).decline_bid("corner", "bob")
            made = await bob.bids_made()
        assert declined.owner == "alice"
        assert made[0].bid.status is BidStatus.DECLINED
        assert made[0].property_owner == "alice"

    @pytest.mark.asyncio
    async def test_bidder_cancels(self, app, parcel):
        async with asgi_client(app) as http:
            bob = _market(Session(http, "bob"))
            await bob.place_bid("corner", 4.0)
            result = await bob.cancel_bid("corner")
        assert result.bids[0].status is BidStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cannot_bid_on_own_property(self, app, parcel):
        notices = NoticeBoard()
        async with asgi_client(app) as http:
            result = await _market(Session(http, "alice"), notices).place_bid("corner", 1.0)
        assert result is None
        assert notices.by_level(NoticeLevel.ERROR)

    @pytest.mark.asyncio
    async def test_only_owner_can_accept(self, app, parcel, registry):
        async with asgi_client(app) as http:
            await _market(Session(http, "bob")).place_bid("corner", 4.0)
            result = await _market(Session(http, "bob")).accept_bid("corner", "bob")
        assert result is None
        assert registry.get_property("corner").owner == "alice"

    @pytest.mark.asyncio
    async def test_bids_read_failure_is_a_notice(self, app):
        notices = NoticeBoard()
        async with asgi_client(app) as http:
            anonymous = PropertyStoreClient(store_config(), http=http)
            market = MarketService(anonymous, OwnershipReconciler(anonymous), notices=notices)
            assert await market.bids_made() == []
        assert notices.by_level(NoticeLevel.ERROR)
