"""Ownership index, render projection and reconciliation."""

from landgrid.ownership.index import (
    PARCEL_COLORS,
    OwnershipIndex,
    RenderFeature,
    classify,
    rebuild_index,
    to_render_features,
)
from landgrid.ownership.reconciler import OwnershipReconciler

__all__ = [
    "PARCEL_COLORS",
    "OwnershipIndex",
    "OwnershipReconciler",
    "RenderFeature",
    "classify",
    "rebuild_index",
    "to_render_features",
]
