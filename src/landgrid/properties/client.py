"""Async client for the remote Property Store REST API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable

import httpx

from landgrid.core.config import StoreConfig
from landgrid.core.errors import (
    InsufficientBalance,
    NotFound,
    OwnershipConflict,
    RemoteUnavailable,
    StoreRejected,
    Unauthenticated,
)
from landgrid.core.types import BidStatus
from landgrid.grid.addressing import CellId, serialize
from landgrid.properties.models import (
    BidMade,
    BidReceived,
    Property,
    PropertyDraft,
    PropertyUpdate,
    PurchaseReceipt,
    UserProfile,
)

logger = logging.getLogger(__name__)


def _cell_key(cell: CellId | str) -> str:
    return serialize(cell) if isinstance(cell, CellId) else cell


class PropertyStoreClient:
    """Talks to the Property Store over HTTP.

    Transport errors and 5xx responses are retried (``max_retries`` times,
    exponential backoff) and then raised as RemoteUnavailable. 4xx
    responses are never retried and map onto the error taxonomy.

    Args:
        config: Store settings. Defaults to StoreConfig() from environment.
        auth_token: Bearer token for the current user; overrides
            ``config.api_token``.
        http: Pre-built AsyncClient (tests pass one bound to an in-process
            transport). The client is owned by the caller in that case.
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        *,
        auth_token: str | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or StoreConfig()
        token = auth_token or self.config.api_token
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=httpx.Timeout(self.config.timeout_seconds),
        )

    @property
    def authenticated(self) -> bool:
        return bool(self._headers)

    # -- properties ----------------------------------------------------------

    async def list_properties(self) -> list[Property]:
        data = await self._json_list("GET", "/properties")
        return [Property.model_validate(item) for item in data]

    async def my_properties(self) -> list[Property]:
        data = await self._json_list("GET", "/properties/user/my-properties")
        return [Property.model_validate(item) for item in data]

    async def is_cell_owned(self, cell: CellId | str) -> bool:
        data = await self._json_object("GET", f"/properties/cell/{_cell_key(cell)}/check")
        return bool(data.get("isOwned", False))

    async def check_cells(self, cells: Iterable[CellId | str]) -> set[str]:
        """Batched ownership check; returns the owned subset."""
        keys = [_cell_key(c) for c in cells]
        if not keys:
            return set()
        data = await self._json_object("POST", "/properties/cells/check", json={"cells": keys})
        return set(data.get("ownedCells", []))

    async def buy_cells(self, draft: PropertyDraft) -> PurchaseReceipt:
        """Atomic purchase commit for unallocated cells."""
        data = await self._json("POST", "/properties/unallocated/buy", json=draft.to_wire())
        return PurchaseReceipt.model_validate(data)

    async def update_property(self, property_id: str, update: PropertyUpdate) -> Property:
        data = await self._json("PUT", f"/properties/{property_id}", json=update.to_wire())
        return Property.model_validate(data)

    async def buy_listed(self, property_id: str) -> Property:
        data = await self._json("POST", f"/properties/{property_id}/buy")
        return Property.model_validate(data)

    # -- bids ----------------------------------------------------------------

    async def create_bid(
        self, property_id: str, amount: float, message: str | None = None
    ) -> Property:
        payload: dict[str, Any] = {"propertyId": property_id, "amount": amount}
        if message is not None:
            payload["message"] = message
        data = await self._json("POST", "/properties/bids", json=payload)
        return Property.model_validate(data)

    async def update_bid_status(
        self,
        property_id: str,
        status: BidStatus,
        bidder_id: str | None = None,
    ) -> Property:
        payload: dict[str, Any] = {"status": str(status)}
        if bidder_id is not None:
            payload["bidderId"] = bidder_id
        data = await self._json(
            "PUT", f"/properties/bids/{property_id}/status", json=payload
        )
        return Property.model_validate(data)

    async def bids_made(self) -> list[BidMade]:
        data = await self._json_object("GET", "/properties/bids/made")
        return [BidMade.model_validate(item) for item in data.get("bids") or []]

    async def bids_received(self) -> list[BidReceived]:
        data = await self._json_object("GET", "/properties/bids/received")
        return [BidReceived.model_validate(item) for item in data.get("bids") or []]

    # -- users ---------------------------------------------------------------

    async def get_profile(self) -> UserProfile:
        data = await self._json("GET", "/users/profile")
        return UserProfile.model_validate(data)

    async def register_user(self, uid: str, email: str = "", name: str = "") -> UserProfile:
        data = await self._json(
            "POST", "/users", json={"uid": uid, "email": email, "name": name}
        )
        return UserProfile.model_validate(data)

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # -- internal ------------------------------------------------------------

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = await self._request_with_retry(method, path, **kwargs)
        if resp.status_code >= 400:
            self._raise_for_status(resp)
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteUnavailable(
                f"{method} {path} returned a non-JSON body", exc
            ) from exc

    async def _json_object(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        data = await self._json(method, path, **kwargs)
        if not isinstance(data, dict):
            raise RemoteUnavailable(f"{method} {path} response was not an object")
        return data

    async def _json_list(self, method: str, path: str, **kwargs: Any) -> list[Any]:
        data = await self._json(method, path, **kwargs)
        if not isinstance(data, list):
            raise RemoteUnavailable(f"{method} {path} response was not an array")
        return data

    async def _request_with_retry(
        self, method: str, path: str, **kwargs: Any
    ) -> httpx.Response:
        max_attempts = max(1, self.config.max_retries + 1)
        for attempt in range(max_attempts):
            try:
                resp = await self._http.request(method, path, headers=self._headers, **kwargs)
            except httpx.TransportError as exc:
                if attempt < max_attempts - 1:
                    delay = self.config.retry_backoff_seconds * (2 ** attempt)
                    logger.warning(
                        "Transport error on %s %s: %s, retrying in %.1fs (%d/%d)",
                        method, path, exc, delay, attempt + 1, max_attempts,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise RemoteUnavailable(f"{method} {path} failed: {exc}", exc) from exc

            if resp.status_code < 500:
                return resp
            if attempt < max_attempts - 1:
                delay = self.config.retry_backoff_seconds * (2 ** attempt)
                logger.warning(
                    "%s %s returned %d, retrying in %.1fs (%d/%d)",
                    method, path, resp.status_code, delay, attempt + 1, max_attempts,
                )
                await asyncio.sleep(delay)
                continue
            raise RemoteUnavailable(f"{method} {path} returned {resp.status_code}")

        raise RemoteUnavailable(f"{method} {path} was not attempted")

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        detail = body.get("detail")
        if isinstance(detail, dict):
            body = {**body, **detail}
            detail = detail.get("message")
        detail = str(detail or resp.text or resp.reason_phrase)

        if resp.status_code == 401:
            raise Unauthenticated(detail)
        if resp.status_code == 402:
            raise InsufficientBalance(
                float(body.get("required", 0.0)), float(body.get("available", 0.0))
            )
        if resp.status_code == 404:
            raise NotFound(detail)
        if resp.status_code == 409:
            raise OwnershipConflict(body.get("ownedCells", []))
        raise StoreRejected(resp.status_code, detail)
