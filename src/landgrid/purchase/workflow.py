"""Purchase Workflow: turns a committed selection into a property.

States::

    READY -> VALIDATING -> PRICING -> CONFIRMING -> SUBMITTING -> SUCCEEDED
                 |            |           |              |
                 +------------+-----------+--------------+--> FAILED

SUCCEEDED and FAILED are reported through a PurchaseOutcome and the
workflow returns to READY. A purchase is all-or-nothing: any owned cell in
the selection aborts the whole attempt and the selection is left as it was.
The store commit is the only write and is treated as atomic; the client
never issues compensating writes.
"""

from __future__ import annotations

import inspect
import logging
import uuid
from enum import StrEnum
from typing import Awaitable, Callable

from pydantic import BaseModel, Field, ValidationError

from landgrid.core.errors import (
    InsufficientBalance,
    LandGridError,
    OwnershipConflict,
    RemoteUnavailable,
    Unauthenticated,
)
from landgrid.notices.board import NoticeSink
from landgrid.notices.models import Notice, NoticeLevel
from landgrid.ownership.reconciler import OwnershipReconciler
from landgrid.pricing.lookup import PricingService
from landgrid.properties.client import PropertyStoreClient
from landgrid.properties.models import Property, PropertyDraft, TreasureDiscovery
from landgrid.selection.tracker import SelectionTracker

logger = logging.getLogger(__name__)


class PurchaseState(StrEnum):
    READY = "ready"
    VALIDATING = "validating"
    PRICING = "pricing"
    CONFIRMING = "confirming"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FailureReason(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    EMPTY_SELECTION = "empty_selection"
    OWNERSHIP_CONFLICT = "ownership_conflict"
    PRICING_FAILED = "pricing_failed"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    REMOTE_UNAVAILABLE = "remote_unavailable"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    BUSY = "busy"
    NOTHING_TO_CONFIRM = "nothing_to_confirm"


class PurchaseQuote(BaseModel):
    """Total cost presented for confirmation."""

    cells: list[str]
    base_price: float
    total_cost: float
    address: str | None = None


class PurchaseOutcome(BaseModel):
    """Result of one workflow step."""

    state: PurchaseState
    reason: FailureReason | None = None
    message: str = ""
    quote: PurchaseQuote | None = None
    purchased: Property | None = None
    treasure: TreasureDiscovery | None = None
    conflicting_cells: list[str] = Field(default_factory=list)
    required_tokens: float | None = None
    available_tokens: float | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is PurchaseState.SUCCEEDED

    @property
    def conflict_count(self) -> int:
        return len(self.conflicting_cells)


ConfirmCallback = Callable[[PurchaseQuote], "bool | Awaitable[bool]"]


class PurchaseWorkflow:
    """Drives one purchase at a time for the local session.

    Args:
        store: Property Store client authenticated as the buyer.
        reconciler: Ownership reconciler, refreshed after every commit.
        tracker: The session's selection.
        pricing: Locates and prices the selection.
        notices: Where user-facing notices go.
        id_factory: Produces the new property id.
    """

    def __init__(
        self,
        store: PropertyStoreClient,
        reconciler: OwnershipReconciler,
        tracker: SelectionTracker,
        pricing: PricingService,
        *,
        notices: NoticeSink | None = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._tracker = tracker
        self._pricing = pricing
        self._notices = notices
        self._id_factory = id_factory
        self._state = PurchaseState.READY
        self._generation = 0
        self._quote: PurchaseQuote | None = None
        self._user_id: str | None = None
        self.last_outcome: PurchaseOutcome | None = None

    @property
    def state(self) -> PurchaseState:
        return self._state

    @property
    def quote(self) -> PurchaseQuote | None:
        return self._quote

    @property
    def can_submit(self) -> bool:
        """False while a submission is outstanding; the UI disables buying."""
        return self._state is PurchaseState.CONFIRMING

    # -- transitions ---------------------------------------------------------

    async def begin(self, user_id: str | None) -> PurchaseOutcome:
        """Validate and price the current selection.

        Returns an outcome in CONFIRMING carrying the quote, FAILED with a
        reason, or READY/CANCELLED when the attempt was cancelled while a
        lookup was in flight.
        """
        if self._state is not PurchaseState.READY:
            return self._busy()
        if not user_id:
            return self._fail(
                FailureReason.UNAUTHENTICATED,
                "You must be logged in to buy property",
            )
        cells = self._tracker.cell_keys
        if not cells:
            return self._fail(
                FailureReason.EMPTY_SELECTION,
                "Please select at least one cell to buy",
            )

        self._generation += 1
        generation = self._generation
        self._user_id = user_id
        try:
            return await self._validate_and_price(cells, generation)
        except Exception:
            # Never leave a half-run attempt holding the workflow.
            if generation == self._generation:
                self._reset()
            raise

    async def _validate_and_price(self, cells: list[str], generation: int) -> PurchaseOutcome:
        self._state = PurchaseState.VALIDATING
        try:
            owned = await self._reconciler.check_many(cells)
        except LandGridError as exc:
            if generation != self._generation:
                return self._superseded()
            logger.warning("Ownership validation failed: %s", exc)
            return self._fail(
                FailureReason.REMOTE_UNAVAILABLE,
                "Could not verify the selected cells. Your selection was kept; please retry.",
            )
        if generation != self._generation:
            return self._superseded()

        conflicts = set(owned) | (set(cells) & self._reconciler.index.conflicted_cells)
        if conflicts:
            return self._conflict(OwnershipConflict(conflicts))

        self._state = PurchaseState.PRICING
        try:
            priced = await self._pricing.quote(cells)
        except (LandGridError, ValueError) as exc:
            if generation != self._generation:
                return self._superseded()
            logger.warning("Pricing failed for %d cells: %s", len(cells), exc)
            return self._fail(
                FailureReason.PRICING_FAILED,
                "Could not price this location. Your selection was kept; please retry.",
            )
        if generation != self._generation:
            return self._superseded()

        self._quote = PurchaseQuote(
            cells=cells,
            base_price=priced.base_price,
            total_cost=priced.base_price * len(cells),
            address=priced.address,
        )
        self._state = PurchaseState.CONFIRMING
        outcome = PurchaseOutcome(
            state=PurchaseState.CONFIRMING,
            quote=self._quote,
            message=f"Buy {len(cells)} cells for {self._quote.total_cost:g} tokens?",
        )
        self.last_outcome = outcome
        return outcome

    def cancel(self) -> bool:
        """Abandon the attempt before submission.

        Pending validation or pricing results are discarded when they
        arrive. A submission already sent cannot be cancelled.
        """
        if self._state in (
            PurchaseState.VALIDATING,
            PurchaseState.PRICING,
            PurchaseState.CONFIRMING,
        ):
            self._generation += 1
            self._reset()
            logger.debug("Purchase cancelled")
            return True
        return False

    async def confirm(self) -> PurchaseOutcome:
        """Check the balance fresh and commit the purchase."""
        if self._state is PurchaseState.SUBMITTING:
            return self._busy()
        if self._state is not PurchaseState.CONFIRMING or self._quote is None:
            return PurchaseOutcome(
                state=self._state,
                reason=FailureReason.NOTHING_TO_CONFIRM,
                message="There is no priced selection to confirm",
            )

        quote = self._quote
        user_id = self._user_id or ""
        self._state = PurchaseState.SUBMITTING
        try:
            profile = await self._store.get_profile()
            if profile.tokens < quote.total_cost:
                raise InsufficientBalance(quote.total_cost, profile.tokens)
            draft = PropertyDraft(
                id=self._id_factory(),
                owner=user_id,
                cells=quote.cells,
                price=quote.total_cost,
                address=quote.address,
            )
            receipt = await self._store.buy_cells(draft)
        except OwnershipConflict as exc:
            return self._conflict(exc)
        except InsufficientBalance as exc:
            return self._fail(
                FailureReason.INSUFFICIENT_BALANCE,
                f"Insufficient tokens. You need {quote.total_cost:g} tokens to buy this property",
                quote=quote,
                required_tokens=quote.total_cost,
                available_tokens=exc.available,
            )
        except Unauthenticated:
            return self._fail(
                FailureReason.UNAUTHENTICATED,
                "Your session has expired. Please log in again.",
                quote=quote,
            )
        except RemoteUnavailable as exc:
            logger.warning("Purchase commit failed: %s", exc)
            return self._fail(
                FailureReason.REMOTE_UNAVAILABLE,
                "Could not reach the property store. Your selection was kept; please retry.",
                quote=quote,
            )
        except (LandGridError, ValidationError) as exc:
            logger.warning("Purchase rejected: %s", exc)
            return self._fail(FailureReason.REJECTED, "Failed to purchase property", quote=quote)
        except Exception:
            self._reset()
            raise

        return await self._succeeded(quote, receipt.property, receipt.treasure if receipt.is_treasure else None)

    async def run(self, user_id: str | None, confirm: ConfirmCallback) -> PurchaseOutcome:
        """Begin, ask ``confirm`` with the quote, then commit or cancel."""
        outcome = await self.begin(user_id)
        if outcome.state is not PurchaseState.CONFIRMING or outcome.quote is None:
            return outcome
        answer = confirm(outcome.quote)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            self.cancel()
            return PurchaseOutcome(
                state=PurchaseState.READY,
                reason=FailureReason.CANCELLED,
                quote=outcome.quote,
                message="Purchase cancelled",
            )
        return await self.confirm()

    # -- internal ------------------------------------------------------------

    async def _succeeded(
        self,
        quote: PurchaseQuote,
        prop: Property,
        treasure: TreasureDiscovery | None,
    ) -> PurchaseOutcome:
        self._tracker.clear()
        logger.info(
            "Purchased property %s (%d cells) for %g tokens",
            prop.id, len(prop.cells), quote.total_cost,
        )
        self._publish(
            NoticeLevel.SUCCESS,
            "Success",
            f"Property purchased successfully for {quote.total_cost:g} tokens",
            property_id=prop.id,
        )
        if treasure is not None:
            logger.info(
                "Treasure %s found in property %s: %g %s",
                treasure.id, prop.id, treasure.reward_amount, treasure.reward_type,
            )
            self._publish(
                NoticeLevel.CELEBRATION,
                f"Treasure found: {treasure.name}",
                treasure.reward_message or treasure.description,
                treasure_id=treasure.id,
                reward_type=treasure.reward_type,
                reward_amount=treasure.reward_amount,
                overlapping_cells=treasure.overlapping_cells,
            )

        refreshed = await self._reconciler.refresh(reason="purchase")
        if not refreshed and self._reconciler.stale:
            self._publish(
                NoticeLevel.WARNING,
                "Map may be out of date",
                "Your purchase went through but the map could not be refreshed.",
            )

        outcome = PurchaseOutcome(
            state=PurchaseState.SUCCEEDED,
            quote=quote,
            purchased=prop,
            treasure=treasure,
            message=f"Property purchased successfully for {quote.total_cost:g} tokens",
        )
        self._reset()
        self.last_outcome = outcome
        return outcome

    def _conflict(self, exc: OwnershipConflict) -> PurchaseOutcome:
        return self._fail(
            FailureReason.OWNERSHIP_CONFLICT,
            f"{exc.count} of the selected cells are already owned and cannot be purchased",
            quote=self._quote,
            conflicting_cells=exc.cells,
        )

    def _fail(self, reason: FailureReason, message: str, **fields) -> PurchaseOutcome:
        outcome = PurchaseOutcome(
            state=PurchaseState.FAILED, reason=reason, message=message, **fields
        )
        self._publish(NoticeLevel.ERROR, "Error", message, reason=str(reason))
        self._reset()
        self.last_outcome = outcome
        return outcome

    def _busy(self) -> PurchaseOutcome:
        return PurchaseOutcome(
            state=self._state,
            reason=FailureReason.BUSY,
            message="A purchase is already in progress",
        )

    def _superseded(self) -> PurchaseOutcome:
        logger.debug("Discarding result of a cancelled purchase attempt")
        return PurchaseOutcome(
            state=PurchaseState.READY,
            reason=FailureReason.CANCELLED,
            message="Purchase cancelled",
        )

    def _reset(self) -> None:
        self._state = PurchaseState.READY
        self._quote = None
        self._user_id = None

    def _publish(self, level: NoticeLevel, title: str, message: str, **metadata) -> None:
        if self._notices is not None:
            self._notices.publish(
                Notice(level=level, title=title, message=message, metadata=metadata)
            )
