"""Purchase workflow."""

from landgrid.purchase.workflow import (
    FailureReason,
    PurchaseOutcome,
    PurchaseQuote,
    PurchaseState,
    PurchaseWorkflow,
)

__all__ = [
    "FailureReason",
    "PurchaseOutcome",
    "PurchaseQuote",
    "PurchaseState",
    "PurchaseWorkflow",
]
