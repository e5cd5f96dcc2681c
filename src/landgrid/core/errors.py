"""Error taxonomy for grid addressing, reconciliation and purchasing."""

from __future__ import annotations

from typing import Iterable


class LandGridError(Exception):
    """Base error for all Land Grid failures."""


class ParseError(LandGridError, ValueError):
    """A CellId string did not split into exactly two base-10 integers."""

    def __init__(self, raw: object) -> None:
        super().__init__(f"Malformed cell id: {raw!r}")
        self.raw = raw


class OwnershipConflict(LandGridError):
    """One or more requested cells already belong to a property."""

    def __init__(self, cells: Iterable[str]) -> None:
        self.cells = sorted(set(cells))
        super().__init__(
            f"{len(self.cells)} of the selected cells are already owned"
        )

    @property
    def count(self) -> int:
        return len(self.cells)


class InsufficientBalance(LandGridError):
    """The token balance does not cover the required amount."""

    def __init__(self, required: float, available: float) -> None:
        super().__init__(
            f"Insufficient tokens: {required:g} required, {available:g} available"
        )
        self.required = required
        self.available = available


class RemoteUnavailable(LandGridError):
    """A remote collaborator could not be reached or answered with 5xx."""

    def __init__(self, message: str, original_exception: Exception | None = None) -> None:
        super().__init__(message)
        self.original_exception = original_exception


class DataIntegrityViolation(LandGridError):
    """The same cell was found in two different properties."""

    def __init__(self, cell: str, first_property_id: str, second_property_id: str) -> None:
        super().__init__(
            f"Cell {cell} is claimed by both {first_property_id} and {second_property_id}"
        )
        self.cell = cell
        self.first_property_id = first_property_id
        self.second_property_id = second_property_id


class Unauthenticated(LandGridError):
    """The caller has no valid identity."""


class NotFound(LandGridError):
    """A referenced property or user does not exist."""


class StoreRejected(LandGridError):
    """The Property Store rejected a request (any other 4xx)."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"Store rejected request ({status_code}): {detail}")
        self.status_code = status_code
        self.detail = detail
