"""Property Store REST API: users, properties, bids, pricing and treasures."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from landgrid.core.errors import (
    InsufficientBalance,
    LandGridError,
    NotFound,
    OwnershipConflict,
    ParseError,
    StoreRejected,
    Unauthenticated,
)
from landgrid.core.types import BidStatus, WireModel
from landgrid.properties.models import PropertyDraft, PropertyUpdate, Treasure
from landgrid.store.pricing import PriceTable
from landgrid.store.registry import LandRegistry


router = APIRouter()


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterUserRequest(WireModel):
    uid: str
    email: str = ""
    name: str = ""


class CellsCheckRequest(WireModel):
    cells: list[str]


class BidRequest(WireModel):
    property_id: str
    amount: float
    message: str | None = None


class BidStatusRequest(WireModel):
    status: BidStatus
    bidder_id: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_registry(request: Request) -> LandRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="Land registry not available")
    return registry


def _get_price_table(request: Request) -> PriceTable:
    table = getattr(request.app.state, "price_table", None)
    if table is None:
        raise HTTPException(status_code=503, detail="Price table not available")
    return table


def _current_user(request: Request) -> str:
    """The development server trusts the bearer token as the user id."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _http_error(Unauthenticated("Missing bearer token"))
    return token.strip()


def _http_error(exc: LandGridError) -> HTTPException:
    if isinstance(exc, OwnershipConflict):
        return HTTPException(
            status_code=409,
            detail={"message": str(exc), "ownedCells": exc.cells, "count": exc.count},
        )
    if isinstance(exc, InsufficientBalance):
        return HTTPException(
            status_code=402,
            detail={
                "message": str(exc),
                "required": exc.required,
                "available": exc.available,
            },
        )
    if isinstance(exc, Unauthenticated):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ParseError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, StoreRejected):
        return HTTPException(status_code=exc.status_code, detail=exc.detail)
    return HTTPException(status_code=400, detail=str(exc))


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.post("/api/users")
async def api_register_user(body: RegisterUserRequest, request: Request) -> dict[str, Any]:
    """Register the caller; idempotent for an existing uid."""
    uid = _current_user(request)
    if body.uid != uid:
        raise HTTPException(status_code=403, detail="Cannot register another user")
    user = _get_registry(request).register_user(body.uid, body.email, body.name)
    return user.to_wire()


@router.get("/api/users/profile")
async def api_get_profile(request: Request) -> dict[str, Any]:
    uid = _current_user(request)
    try:
        return _get_registry(request).get_user(uid).to_wire()
    except LandGridError as exc:
        raise _http_error(exc) from exc


@router.get("/api/users")
async def api_list_users(request: Request) -> list[dict[str, Any]]:
    return [u.to_wire() for u in _get_registry(request).list_users()]


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@router.get("/api/properties")
async def api_list_properties(request: Request) -> list[dict[str, Any]]:
    return [p.to_wire() for p in _get_registry(request).list_properties()]


@router.get("/api/properties/user/my-properties")
async def api_my_properties(request: Request) -> list[dict[str, Any]]:
    uid = _current_user(request)
    return [p.to_wire() for p in _get_registry(request).properties_of(uid)]


@router.get("/api/properties/cell/{cell_id}/check")
async def api_check_cell(cell_id: str, request: Request) -> dict[str, Any]:
    try:
        prop = _get_registry(request).owner_of_cell(cell_id)
    except LandGridError as exc:
        raise _http_error(exc) from exc
    result: dict[str, Any] = {"cellId": cell_id, "isOwned": prop is not None}
    if prop is not None:
        result["propertyId"] = prop.id
    return result


@router.post("/api/properties/cells/check")
async def api_check_cells(body: CellsCheckRequest, request: Request) -> dict[str, Any]:
    """Batched ownership check."""
    try:
        owned = _get_registry(request).owned_cells(body.cells)
    except LandGridError as exc:
        raise _http_error(exc) from exc
    return {"ownedCells": owned}


@router.post("/api/properties/unallocated/buy")
async def api_buy_unallocated(body: PropertyDraft, request: Request) -> dict[str, Any]:
    """Atomic purchase commit: every cell or none."""
    uid = _current_user(request)
    try:
        receipt = _get_registry(request).buy_unallocated(uid, body)
    except LandGridError as exc:
        raise _http_error(exc) from exc
    return receipt.to_wire()


@router.post("/api/properties/bids")
async def api_place_bid(body: BidRequest, request: Request) -> dict[str, Any]:
    uid = _current_user(request)
    try:
        prop = _get_registry(request).place_bid(
            uid, body.property_id, body.amount, body.message
        )
    except LandGridError as exc:
        raise _http_error(exc) from exc
    return prop.to_wire()


@router.get("/api/properties/bids/made")
async def api_bids_made(request: Request) -> dict[str, Any]:
    uid = _current_user(request)
    return {"bids": [b.to_wire() for b in _get_registry(request).bids_made(uid)]}


@router.get("/api/properties/bids/received")
async def api_bids_received(request: Request) -> dict[str, Any]:
    uid = _current_user(request)
    return {"bids": [b.to_wire() for b in _get_registry(request).bids_received(uid)]}


@router.put("/api/properties/bids/{property_id}/status")
async def api_update_bid_status(
    property_id: str, body: BidStatusRequest, request: Request
) -> dict[str, Any]:
    uid = _current_user(request)
    try:
        prop = _get_registry(request).update_bid_status(
            uid, property_id, body.status, body.bidder_id
        )
    except LandGridError as exc:
        raise _http_error(exc) from exc
    return prop.to_wire()


@router.get("/api/properties/{property_id}")
async def api_get_property(property_id: str, request: Request) -> dict[str, Any]:
    try:
        return _get_registry(request).get_property(property_id).to_wire()
    except LandGridError as exc:
        raise _http_error(exc) from exc


@router.put("/api/properties/{property_id}")
async def api_update_property(
    property_id: str, body: PropertyUpdate, request: Request
) -> dict[str, Any]:
    uid = _current_user(request)
    try:
        prop = _get_registry(request).update_property(uid, property_id, body)
    except LandGridError as exc:
        raise _http_error(exc) from exc
    return prop.to_wire()


@router.post("/api/properties/{property_id}/buy")
async def api_buy_listed(property_id: str, request: Request) -> dict[str, Any]:
    uid = _current_user(request)
    try:
        prop = _get_registry(request).buy_listed(uid, property_id)
    except LandGridError as exc:
        raise _http_error(exc) from exc
    return prop.to_wire()


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


@router.get("/api/pricing")
async def api_price_per_cell(address: str, request: Request) -> dict[str, Any]:
    if not address.strip():
        raise HTTPException(status_code=400, detail="Address is required")
    price = _get_price_table(request).price_for(address)
    return {"address": address, "pricePerCell": price}


# ---------------------------------------------------------------------------
# Treasures
# ---------------------------------------------------------------------------


@router.post("/api/treasures")
async def api_create_treasure(body: Treasure, request: Request) -> dict[str, Any]:
    uid = _current_user(request)
    try:
        treasure = _get_registry(request).add_treasure(body, created_by=uid)
    except LandGridError as exc:
        raise _http_error(exc) from exc
    return treasure.to_wire()


@router.get("/api/treasures")
async def api_list_treasures(request: Request) -> list[dict[str, Any]]:
    return [t.to_wire() for t in _get_registry(request).list_treasures()]

