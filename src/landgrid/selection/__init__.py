"""Pointer-driven cell selection."""

from landgrid.selection.cache import SelectionCache
from landgrid.selection.tracker import SelectionMode, SelectionTracker

__all__ = ["SelectionCache", "SelectionMode", "SelectionTracker"]
