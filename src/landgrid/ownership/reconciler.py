"""Ownership Reconciler: keeps the local OwnershipIndex in step with the store."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable

from pydantic import ValidationError

from landgrid.core.errors import LandGridError, ParseError
from landgrid.grid.addressing import CellId, GridAddressor, as_cell, serialize
from landgrid.grid.features import feature_collection
from landgrid.ownership.index import (
    OwnershipIndex,
    RenderFeature,
    rebuild_index,
    to_render_features,
)
from landgrid.properties.client import PropertyStoreClient
from landgrid.properties.models import Property

logger = logging.getLogger(__name__)


class OwnershipReconciler:
    """Owns the OwnershipIndex and rebuilds it from whole store snapshots.

    ``is_owned`` answers from the in-memory index only and is safe inside
    pointer-move handlers. ``is_owned_remote`` and ``check_many`` ask the
    store. ``refresh`` fetches the full property list and swaps in a new
    index; a fetch that completes after a newer one has been applied is
    discarded. When the store is unreachable the last good snapshot stays
    in place and ``stale`` is set for the caller to surface.
    """

    def __init__(
        self,
        store: PropertyStoreClient,
        addressor: GridAddressor | None = None,
        *,
        current_user_id: str | None = None,
    ) -> None:
        self._store = store
        self._addressor = addressor or GridAddressor()
        self.current_user_id = current_user_id
        self._index = OwnershipIndex.empty()
        self._issued_seq = 0
        self._applied_seq = 0
        self._stale = False
        self._last_error: str | None = None
        self._auto_task: asyncio.Task[None] | None = None

    @property
    def index(self) -> OwnershipIndex:
        return self._index

    @property
    def snapshot(self) -> tuple[Property, ...]:
        return self._index.properties

    @property
    def stale(self) -> bool:
        return self._stale

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def applied_sequence(self) -> int:
        return self._applied_seq

    # -- membership ----------------------------------------------------------

    def is_owned(self, cell: CellId | str) -> bool:
        """Cache-only membership test."""
        try:
            return as_cell(cell) in self._index
        except ParseError:
            return False

    def owner_of(self, cell: CellId | str) -> Property | None:
        return self._index.owner_of(cell)

    async def is_owned_remote(self, cell: CellId | str) -> bool:
        """One round trip to the store."""
        return await self._store.is_cell_owned(cell)

    async def check_many(self, cells: Iterable[CellId | str]) -> set[str]:
        """Batched remote check; returns the owned subset as cell strings."""
        keys = sorted({serialize(c) if isinstance(c, CellId) else c for c in cells})
        if not keys:
            return set()
        return await self._store.check_cells(keys)

    # -- reconciliation ------------------------------------------------------

    def apply_snapshot(self, properties: Iterable[Property]) -> OwnershipIndex:
        """Replace the index with one rebuilt from ``properties``.

        Counts as the newest snapshot: refreshes already in flight are
        discarded when they land.
        """
        self._index = rebuild_index(properties)
        self._issued_seq += 1
        self._applied_seq = self._issued_seq
        self._stale = False
        self._last_error = None
        return self._index

    async def refresh(self, reason: str = "manual") -> bool:
        """Fetch every property and rebuild the index.

        Returns True when a fresh snapshot was applied, False when the
        store was unreachable or a newer snapshot had already been applied.
        Never raises for remote failures.
        """
        self._issued_seq += 1
        seq = self._issued_seq
        logger.debug("Ownership refresh #%d started (%s)", seq, reason)
        try:
            properties = await self._store.list_properties()
        except (LandGridError, ValidationError) as exc:
            if seq <= self._applied_seq:
                logger.warning(
                    "Ignoring failure of ownership refresh #%d, #%d already applied: %s",
                    seq, self._applied_seq, exc,
                )
                return False
            self._stale = True
            self._last_error = str(exc)
            logger.warning(
                "Ownership refresh #%d failed, keeping last snapshot of %d properties: %s",
                seq, len(self._index.properties), exc,
            )
            return False

        if seq <= self._applied_seq:
            logger.warning(
                "Discarding ownership snapshot #%d, #%d already applied",
                seq, self._applied_seq,
            )
            return False

        index = rebuild_index(properties)
        self._index = index
        self._applied_seq = seq
        self._stale = False
        self._last_error = None
        logger.info(
            "Ownership index rebuilt (#%d, %s): %d properties, %d cells, %d violations",
            seq, reason, len(index.properties), len(index), len(index.violations),
        )
        return True

    # -- projection ----------------------------------------------------------

    def render_features(self, current_user_id: str | None = None) -> list[RenderFeature]:
        user_id = current_user_id if current_user_id is not None else self.current_user_id
        return to_render_features(self._index, user_id, self._addressor)

    def render_collection(self, current_user_id: str | None = None) -> dict[str, Any]:
        return feature_collection(f.to_geojson() for f in self.render_features(current_user_id))

    # -- periodic refresh ----------------------------------------------------

    def start_auto_refresh(self, interval_seconds: float) -> asyncio.Task[None]:
        """Refresh on a fixed interval until ``stop_auto_refresh``."""
        if self._auto_task is not None and not self._auto_task.done():
            return self._auto_task
        self._auto_task = asyncio.create_task(self._auto_refresh(interval_seconds))
        return self._auto_task

    async def stop_auto_refresh(self) -> None:
        task, self._auto_task = self._auto_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _auto_refresh(self, interval_seconds: float) -> None:
        while True:
            await self.refresh(reason="interval")
            await asyncio.sleep(interval_seconds)
