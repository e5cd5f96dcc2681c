"""Tests for GeoJSON feature builders and the grid overlay."""

from __future__ import annotations

from landgrid.core.config import GridConfig
from landgrid.grid.addressing import GridAddressor
from landgrid.grid.features import (
    cell_feature,
    closed_ring,
    feature_collection,
    grid_lines,
    polygon_feature,
)


def _unit_addressor() -> GridAddressor:
    return GridAddressor(GridConfig(size_lng=1.0, size_lat=1.0))


class TestPolygons:
    def test_closed_ring_repeats_first_vertex(self):
        ring = closed_ring([[0, 0], [1, 0], [1, 1], [0, 1]])
        assert len(ring) == 5
        assert ring[0] == ring[-1] == [0, 0]

    def test_closed_ring_empty(self):
        assert closed_ring([]) == []

    def test_polygon_feature_shape(self):
        feature = polygon_feature([[0, 0], [1, 0], [1, 1], [0, 1]], {"id": "p1"})
        assert feature["type"] == "Feature"
        assert feature["properties"] == {"id": "p1"}
        assert feature["geometry"]["type"] == "Polygon"
        assert len(feature["geometry"]["coordinates"][0]) == 5

    def test_polygon_feature_copies_properties(self):
        props = {"a": 1}
        feature = polygon_feature([[0, 0], [1, 0], [1, 1], [0, 1]], props)
        feature["properties"]["a"] = 2
        assert props == {"a": 1}

    def test_cell_feature_uses_cell_bounds(self):
        feature = cell_feature(_unit_addressor(), "2,3", {"cellKey": "2,3"})
        assert feature["geometry"]["coordinates"][0] == [
            [2.0, 3.0], [3.0, 3.0], [3.0, 4.0], [2.0, 4.0], [2.0, 3.0],
        ]

    def test_feature_collection(self):
        collection = feature_collection(iter([{"type": "Feature"}]))
        assert collection == {"type": "FeatureCollection", "features": [{"type": "Feature"}]}


class TestGridLines:
    def test_lines_cover_viewport_on_cell_boundaries(self):
        lines = grid_lines(_unit_addressor(), 0.5, 0.5, 2.5, 1.5)
        horizontal = [l for l in lines if l["geometry"]["coordinates"][0][1] == l["geometry"]["coordinates"][1][1]]
        vertical = [l for l in lines if l not in horizontal]
        # rows 0..2 and columns 0..3
        assert len(horizontal) == 3
        assert len(vertical) == 4
        assert horizontal[0]["geometry"]["coordinates"] == [[0.0, 0.0], [3.0, 0.0]]
        assert vertical[-1]["geometry"]["coordinates"] == [[3.0, 0.0], [3.0, 2.0]]

    def test_lines_are_line_strings(self):
        lines = grid_lines(_unit_addressor(), -1.5, -1.5, -0.5, -0.5)
        assert all(l["geometry"]["type"] == "LineString" for l in lines)
        assert lines[0]["geometry"]["coordinates"][0] == [-2.0, -2.0]
