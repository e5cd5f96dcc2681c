"""Selection Tracker: pointer-driven, toggle-based cell picking.

A pointer-down at grid zoom toggles between Idle and Selecting. While
Selecting, every unowned cell the pointer passes over joins the selection.
Pointer-up and pointer-leave do not end a session, so the pointer may leave
the map and come back mid-selection.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any, Callable, Iterable

from landgrid.core.config import SelectionConfig
from landgrid.core.errors import ParseError
from landgrid.grid.addressing import CellId, GridAddressor, as_cell, serialize
from landgrid.grid.features import cell_feature, feature_collection
from landgrid.selection.cache import SelectionCache

logger = logging.getLogger(__name__)

OwnershipTest = Callable[[CellId], bool]
SelectionListener = Callable[[dict[str, Any]], None]


class SelectionMode(StrEnum):
    IDLE = "idle"
    SELECTING = "selecting"


class SelectionTracker:
    """Session-owned set of uncommitted cells.

    Args:
        addressor: Grid addressor used to locate the cell under the pointer.
        is_owned: Synchronous, cache-only ownership test (usually
            ``OwnershipReconciler.is_owned``).
        config: Selection preferences (color, cache path).
        cache: Optional local cache kept in step with every mutation.
        on_change: Called with the regenerated selection FeatureCollection
            after every mutation.
    """

    def __init__(
        self,
        addressor: GridAddressor,
        is_owned: OwnershipTest,
        *,
        config: SelectionConfig | None = None,
        cache: SelectionCache | None = None,
        on_change: SelectionListener | None = None,
    ) -> None:
        self._addressor = addressor
        self._is_owned = is_owned
        self._config = config or SelectionConfig()
        self._cache = cache
        self._on_change = on_change
        self._cells: set[CellId] = set()
        self._mode = SelectionMode.IDLE
        self._color = self._config.color

    @property
    def mode(self) -> SelectionMode:
        return self._mode

    @property
    def cells(self) -> frozenset[CellId]:
        return frozenset(self._cells)

    @property
    def cell_keys(self) -> list[str]:
        return sorted(serialize(c) for c in self._cells)

    @property
    def color(self) -> str:
        return self._color

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, cell: object) -> bool:
        try:
            return as_cell(cell) in self._cells  # type: ignore[arg-type]
        except ParseError:
            return False

    # -- pointer events ------------------------------------------------------

    def pointer_down(self, lng: float, lat: float, zoom: float) -> bool:
        """Toggle selection mode. Returns True if the selection changed."""
        if zoom < self._addressor.min_zoom:
            return False

        if self._mode is SelectionMode.SELECTING:
            self._mode = SelectionMode.IDLE
            logger.debug("Selection mode off with %d cells", len(self._cells))
            return False

        cell = self._addressor.cell_id_of(lng, lat)
        if self._is_owned(cell):
            logger.debug("Ignoring pointer down on owned cell %s", cell)
            return False

        self._mode = SelectionMode.SELECTING
        return self._add(cell)

    def pointer_move(self, lng: float, lat: float, zoom: float) -> bool:
        if self._mode is not SelectionMode.SELECTING or zoom < self._addressor.min_zoom:
            return False
        cell = self._addressor.cell_id_of(lng, lat)
        if cell in self._cells or self._is_owned(cell):
            return False
        return self._add(cell)

    def pointer_up(self) -> None:
        """Selection continues until the next toggling pointer-down."""

    def pointer_leave(self) -> None:
        """Selection continues until the next toggling pointer-down."""

    # -- direct manipulation -------------------------------------------------

    def clear(self) -> None:
        self._cells.clear()
        self._mode = SelectionMode.IDLE
        self._changed()

    def replace(self, cells: Iterable[CellId | str]) -> None:
        """Swap the whole selection, e.g. for all cells of one's own property."""
        self._cells = set(self._parse_all(cells))
        self._changed()

    def set_color(self, color: str) -> None:
        self._color = color
        self._notify()

    def restore(self) -> list[str]:
        """Load the cached selection, dropping owned and malformed cells.

        Returns the cell strings that were dropped.
        """
        if self._cache is None:
            return []
        dropped: list[str] = []
        restored: set[CellId] = set()
        for raw in self._cache.load():
            try:
                cell = as_cell(raw)
            except ParseError as exc:
                logger.warning("Dropping cached selection entry: %s", exc)
                dropped.append(raw)
                continue
            if self._is_owned(cell):
                dropped.append(raw)
                continue
            restored.add(cell)
        if dropped:
            logger.info("Dropped %d cached cells that are owned or malformed", len(dropped))
        self._cells = restored
        self._changed()
        return dropped

    # -- rendering -----------------------------------------------------------

    def render_features(self) -> dict[str, Any]:
        """Selected-but-uncommitted cells, colored from client preference."""
        props = {"fillColor": self._color, "outlineColor": self._color, "selected": True}
        return feature_collection(
            cell_feature(self._addressor, cell, {**props, "cellKey": serialize(cell)})
            for cell in sorted(self._cells, key=lambda c: (c.lng_index, c.lat_index))
        )

    # -- internal ------------------------------------------------------------

    def _add(self, cell: CellId) -> bool:
        if cell in self._cells:
            return False
        self._cells.add(cell)
        logger.debug("Selected cell %s (%d total)", cell, len(self._cells))
        self._changed()
        return True

    def _changed(self) -> None:
        if self._cache is not None:
            self._cache.save(serialize(c) for c in self._cells)
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.render_features())

    def _parse_all(self, cells: Iterable[CellId | str]) -> list[CellId]:
        parsed: list[CellId] = []
        for raw in cells:
            try:
                parsed.append(as_cell(raw))
            except ParseError as exc:
                logger.warning("Skipping cell: %s", exc)
        return parsed
