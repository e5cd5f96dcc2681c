"""Grid Addressor: continuous (lng, lat) to discrete cell ids and back.

Cells are addressed by ``(lng_index, lat_index)`` where each index is the
floor of the coordinate divided by the grid size on that axis. Floor (not
truncation) keeps the western and southern hemispheres contiguous across
the origin: ``-0.00005`` lands in cell ``-1``, not ``0``.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Iterable

from pydantic import BaseModel, ConfigDict

from landgrid.core.config import GridConfig
from landgrid.core.errors import ParseError

logger = logging.getLogger(__name__)

_INDEX_RE = re.compile(r"^[+-]?\d+$")


class CellId(BaseModel):
    """Immutable grid coordinate of one ~10 m x 10 m patch."""

    model_config = ConfigDict(frozen=True)

    lng_index: int
    lat_index: int

    def __str__(self) -> str:
        return serialize(self)


def serialize(cell: CellId) -> str:
    """Canonical ``"lngIndex,latIndex"`` form."""
    return f"{cell.lng_index},{cell.lat_index}"


def deserialize(raw: str) -> CellId:
    """Parse a canonical cell string.

    Raises:
        ParseError: If ``raw`` is not exactly two comma-separated base-10
            integers.
    """
    if not isinstance(raw, str):
        raise ParseError(raw)
    parts = raw.split(",")
    if len(parts) != 2 or not all(_INDEX_RE.match(p) for p in parts):
        raise ParseError(raw)
    return CellId(lng_index=int(parts[0], 10), lat_index=int(parts[1], 10))


def as_cell(value: CellId | str) -> CellId:
    """Accept either a CellId or its serialized form."""
    if isinstance(value, CellId):
        return value
    return deserialize(value)


def _floor_index(value: float, size: float) -> int:
    index = math.floor(value / size)
    # Division can round across a boundary; keep index * size <= value.
    if index * size > value:
        index -= 1
    elif (index + 1) * size <= value:
        index += 1
    return index


class GridAddressor:
    """Pure conversions between geographic coordinates and cells."""

    def __init__(self, config: GridConfig | None = None) -> None:
        self._config = config or GridConfig()

    @property
    def size_lng(self) -> float:
        return self._config.size_lng

    @property
    def size_lat(self) -> float:
        return self._config.size_lat

    @property
    def min_zoom(self) -> float:
        return self._config.min_zoom

    @property
    def max_zoom(self) -> float:
        return self._config.max_zoom

    def cell_id_of(self, lng: float, lat: float) -> CellId:
        if not (math.isfinite(lng) and math.isfinite(lat)):
            raise ValueError(f"Coordinates must be finite, got ({lng}, {lat})")
        return CellId(
            lng_index=_floor_index(lng, self.size_lng),
            lat_index=_floor_index(lat, self.size_lat),
        )

    def cell_key_of(self, lng: float, lat: float) -> str:
        return serialize(self.cell_id_of(lng, lat))

    def cell_origin(self, cell: CellId | str) -> tuple[float, float]:
        """South-west corner of the cell."""
        cell = as_cell(cell)
        return cell.lng_index * self.size_lng, cell.lat_index * self.size_lat

    def cell_bounds(self, cell: CellId | str) -> list[list[float]]:
        """Four corners, counter-clockwise from the south-west corner."""
        lng, lat = self.cell_origin(cell)
        return [
            [lng, lat],
            [lng + self.size_lng, lat],
            [lng + self.size_lng, lat + self.size_lat],
            [lng, lat + self.size_lat],
        ]

    def cell_center(self, cell: CellId | str) -> tuple[float, float]:
        lng, lat = self.cell_origin(cell)
        return lng + self.size_lng / 2, lat + self.size_lat / 2

    def contains(self, cell: CellId | str, lng: float, lat: float) -> bool:
        west, south = self.cell_origin(cell)
        return (
            west <= lng < west + self.size_lng
            and south <= lat < south + self.size_lat
        )

    def center_of_cells(
        self, cells: Iterable[CellId | str]
    ) -> tuple[float, float] | None:
        """Mean south-west corner of the given cells.

        Malformed entries are logged and skipped. Returns None when no
        valid cell remains.
        """
        total_lng = 0.0
        total_lat = 0.0
        count = 0
        for raw in cells:
            try:
                lng, lat = self.cell_origin(raw)
            except ParseError as exc:
                logger.warning("Skipping cell while locating selection: %s", exc)
                continue
            total_lng += lng
            total_lat += lat
            count += 1
        if count == 0:
            return None
        return total_lng / count, total_lat / count

    def grid_visible(self, zoom: float) -> bool:
        return self.min_zoom <= zoom <= self.max_zoom
