"""Grid addressing and GeoJSON geometry."""

from landgrid.grid.addressing import CellId, GridAddressor, as_cell, deserialize, serialize

__all__ = ["CellId", "GridAddressor", "as_cell", "deserialize", "serialize"]
