"""OwnershipIndex and its pure rebuild and projection functions.

The index is a derived, read-only cache from CellId to owning Property.
It is always rebuilt wholesale from one store snapshot and never patched
in place.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping

from pydantic import BaseModel, Field

from landgrid.core.errors import DataIntegrityViolation, ParseError
from landgrid.core.types import ParcelStatus
from landgrid.grid.addressing import CellId, GridAddressor, as_cell, deserialize, serialize
from landgrid.grid.features import polygon_feature
from landgrid.properties.models import Property

logger = logging.getLogger(__name__)


# Fill / outline colors per classification.
PARCEL_COLORS: dict[ParcelStatus, tuple[str, str]] = {
    ParcelStatus.OWN: ("#4CAF50", "#2E7D32"),
    ParcelStatus.FOR_SALE: ("#FFC107", "#FF8F00"),
    ParcelStatus.OTHER: ("#F44336", "#B71C1C"),
}


def classify(prop: Property, current_user_id: str | None) -> ParcelStatus:
    """Three-way classification used by every rendering layer."""
    if current_user_id is not None and prop.owner == current_user_id:
        return ParcelStatus.OWN
    if prop.for_sale:
        return ParcelStatus.FOR_SALE
    return ParcelStatus.OTHER


class OwnershipIndex(Mapping[CellId, Property]):
    """Immutable CellId -> Property mapping with integrity diagnostics."""

    def __init__(
        self,
        owners: dict[CellId, Property],
        properties: Iterable[Property] = (),
        violations: Iterable[DataIntegrityViolation] = (),
    ) -> None:
        self._owners = MappingProxyType(dict(owners))
        self._properties = tuple(properties)
        self._violations = tuple(violations)

    def __getitem__(self, cell: CellId) -> Property:
        return self._owners[cell]

    def __iter__(self) -> Iterator[CellId]:
        return iter(self._owners)

    def __len__(self) -> int:
        return len(self._owners)

    def __contains__(self, cell: object) -> bool:
        if isinstance(cell, str):
            try:
                cell = deserialize(cell)
            except ParseError:
                return False
        return cell in self._owners

    @property
    def properties(self) -> tuple[Property, ...]:
        return self._properties

    @property
    def violations(self) -> tuple[DataIntegrityViolation, ...]:
        return self._violations

    @property
    def conflicted_cells(self) -> frozenset[str]:
        """Cells claimed by more than one property."""
        return frozenset(v.cell for v in self._violations)

    def owner_of(self, cell: CellId | str) -> Property | None:
        try:
            return self._owners.get(as_cell(cell))
        except ParseError:
            return None

    @classmethod
    def empty(cls) -> OwnershipIndex:
        return cls({})


def rebuild_index(properties: Iterable[Property], *, strict: bool = False) -> OwnershipIndex:
    """Fold every property's cells into a fresh OwnershipIndex.

    Properties are folded in id order so the result does not depend on the
    order the store returned them in. A cell claimed twice is a server-side
    invariant breach: it is logged and recorded on the index, and the first
    claimant in id order is kept for display. With ``strict`` the first
    breach is raised instead.

    Malformed cell strings are logged and skipped.
    """
    ordered = sorted(properties, key=lambda p: p.id)
    owners: dict[CellId, Property] = {}
    violations: list[DataIntegrityViolation] = []

    for prop in ordered:
        for raw in prop.cells:
            try:
                cell = deserialize(raw)
            except ParseError as exc:
                logger.warning("Skipping cell in property %s: %s", prop.id, exc)
                continue
            existing = owners.get(cell)
            if existing is None:
                owners[cell] = prop
                continue
            if existing.id == prop.id:
                continue
            violation = DataIntegrityViolation(serialize(cell), existing.id, prop.id)
            if strict:
                raise violation
            logger.error("Data integrity violation: %s", violation)
            violations.append(violation)

    return OwnershipIndex(owners, ordered, violations)


class RenderFeature(BaseModel):
    """One renderable cell polygon annotated with ownership status."""

    cell: str
    property_id: str
    owner: str
    price: float
    cell_count: int
    is_own_property: bool
    for_sale: bool = False
    sale_price: float = 0.0
    name: str = ""
    description: str = ""
    address: str = ""
    status: ParcelStatus
    fill_color: str
    outline_color: str
    polygon: list[list[float]] = Field(default_factory=list)

    def to_geojson(self) -> dict[str, Any]:
        properties = {
            "id": self.property_id,
            "owner": self.owner,
            "price": self.price,
            "cellCount": self.cell_count,
            "isOwnProperty": self.is_own_property,
            "cellKey": self.cell,
            "forSale": self.for_sale,
            "salePrice": self.sale_price,
            "name": self.name,
            "description": self.description,
            "address": self.address,
            "status": str(self.status),
            "fillColor": self.fill_color,
            "outlineColor": self.outline_color,
        }
        return polygon_feature(self.polygon, properties)


def to_render_features(
    index: OwnershipIndex,
    current_user_id: str | None,
    addressor: GridAddressor,
) -> list[RenderFeature]:
    """Project the index into one feature per owned cell.

    Output is ordered by (property id, cell) so two rebuilds from the same
    snapshot produce identical lists.
    """
    features: list[RenderFeature] = []
    for cell, prop in index.items():
        status = classify(prop, current_user_id)
        fill, outline = PARCEL_COLORS[status]
        features.append(
            RenderFeature(
                cell=serialize(cell),
                property_id=prop.id,
                owner=prop.owner,
                price=prop.price,
                cell_count=len(prop.cells),
                is_own_property=status is ParcelStatus.OWN,
                for_sale=prop.for_sale,
                sale_price=prop.sale_price or 0.0,
                name=prop.name or "",
                description=prop.description or "",
                address=prop.address or "",
                status=status,
                fill_color=fill,
                outline_color=outline,
                polygon=addressor.cell_bounds(cell),
            )
        )
    features.sort(key=lambda f: (f.property_id, f.cell))
    return features
