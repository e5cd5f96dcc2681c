"""GeoJSON builders for cells, selections and the grid overlay."""

from __future__ import annotations

import math
from typing import Any, Iterable

from landgrid.grid.addressing import CellId, GridAddressor


def closed_ring(corners: list[list[float]]) -> list[list[float]]:
    """Return the corners with the first vertex repeated at the end."""
    if not corners:
        return []
    return [list(c) for c in corners] + [list(corners[0])]


def polygon_feature(
    corners: list[list[float]],
    properties: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "type": "Feature",
        "properties": dict(properties or {}),
        "geometry": {"type": "Polygon", "coordinates": [closed_ring(corners)]},
    }


def line_feature(start: list[float], end: list[float]) -> dict[str, Any]:
    return {
        "type": "Feature",
        "properties": {},
        "geometry": {"type": "LineString", "coordinates": [list(start), list(end)]},
    }


def feature_collection(features: Iterable[dict[str, Any]]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": list(features)}


def cell_feature(
    addressor: GridAddressor,
    cell: CellId | str,
    properties: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return polygon_feature(addressor.cell_bounds(cell), properties)


def grid_lines(
    addressor: GridAddressor,
    west: float,
    south: float,
    east: float,
    north: float,
) -> list[dict[str, Any]]:
    """Grid-aligned lines covering a viewport.

    The covered area is widened outward to whole cells so lines line up
    with cell boundaries regardless of where the viewport edge falls.
    """
    size_lng = addressor.size_lng
    size_lat = addressor.size_lat
    first_col = math.floor(west / size_lng)
    last_col = math.ceil(east / size_lng)
    first_row = math.floor(south / size_lat)
    last_row = math.ceil(north / size_lat)

    start_lng = first_col * size_lng
    end_lng = last_col * size_lng
    start_lat = first_row * size_lat
    end_lat = last_row * size_lat

    lines: list[dict[str, Any]] = []
    for row in range(first_row, last_row + 1):
        lat = row * size_lat
        lines.append(line_feature([start_lng, lat], [end_lng, lat]))
    for col in range(first_col, last_col + 1):
        lng = col * size_lng
        lines.append(line_feature([lng, start_lat], [lng, end_lat]))
    return lines
