"""Core type definitions shared across all Land Grid modules."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ParcelStatus(StrEnum):
    """Ownership classification of a parcel relative to the viewing user."""

    OWN = "own"
    FOR_SALE = "for_sale"
    OTHER = "other"


class BidStatus(StrEnum):
    """Lifecycle of a bid placed on a property."""

    ACTIVE = "active"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class WireModel(BaseModel):
    """Base for models exchanged with the Property Store.

    The store speaks camelCase JSON; Python code uses snake_case attributes.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
