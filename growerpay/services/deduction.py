"""Advance deduction allocation for one grower payment.

A grower with outstanding cash advances can have part of the current
consolidated payment withheld to pay those advances down.  The
DeductionAllocator backs the deduction dialog for one grower: it holds the
amount being deducted, keeps the remaining advance balance and the net
payable amount in step with it, and writes the result back onto the
GrowerPaymentSelection when the user applies it.

Requested amounts are clamped, not rejected:

    requested < 0                      → 0
    requested > total outstanding      → total outstanding
    otherwise                          → requested

and after every change:

    remaining_deductions = total_outstanding - deduct_from_this_transaction
    net_payment_amount   = consolidated_amount - deduct_from_this_transaction

All amounts are Decimal.  Floats are refused so repeated allocate/clear
cycles cannot drift.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Protocol, Sequence

from growerpay.middleware.exceptions import InvalidStateError

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class OutstandingAdvance(Protocol):
    """Anything carrying a remaining advance balance (e.g. AdvanceCheque)."""

    current_advance_amount: Decimal


@dataclass
class GrowerPaymentSelection:
    """One grower's pending consolidated payment.

    Only the deduction fields are written by the allocator; the net amount
    is never stored and is derived on read.
    """
    grower_name: str
    grower_number: str
    consolidated_amount: Decimal
    deduct_from_this_transaction: Decimal = ZERO
    remaining_deductions: Decimal = ZERO
    grower_id: str | None = None

    @property
    def net_payment_amount(self) -> Decimal:
        return self.consolidated_amount - self.deduct_from_this_transaction


@dataclass(frozen=True)
class DeductionAllocation:
    """Derived deduction values, consistent with each other by construction."""
    deduct_from_this_transaction: Decimal
    remaining_deductions: Decimal
    net_payment_amount: Decimal
    total_outstanding_advances: Decimal


def to_decimal(value) -> Decimal:
    """Coerce an int, numeric string or Decimal to Decimal.

    Floats and NaN are refused; infinities pass through and are clamped.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Monetary amounts must be Decimal, not {type(value).__name__}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise TypeError(f"Not a monetary amount: {value!r}") from exc
    if amount.is_nan():
        raise TypeError(f"Not a monetary amount: {value!r}")
    return amount


class DeductionAllocator:
    """Deduction editing session for a single grower payment."""

    def __init__(
        self,
        selection: GrowerPaymentSelection,
        outstanding_advances: Sequence[OutstandingAdvance],
    ):
        self._selection = selection
        # Frozen for the session: advances are aggregated, never edited here
        self._advances = tuple(outstanding_advances)
        self._total_outstanding = sum(
            (to_decimal(a.current_advance_amount) for a in self._advances), ZERO
        )
        self.dialog_result: bool | None = None
        self._reset_from_selection()

    # ── Read-only views ──────────────────────────────────────

    @property
    def selection(self) -> GrowerPaymentSelection:
        return self._selection

    @property
    def outstanding_advances(self) -> tuple:
        return self._advances

    @property
    def grower_name(self) -> str:
        return self._selection.grower_name

    @property
    def grower_number(self) -> str:
        return self._selection.grower_number

    @property
    def gross_amount(self) -> Decimal:
        return to_decimal(self._selection.consolidated_amount)

    @property
    def total_outstanding_advances(self) -> Decimal:
        return self._total_outstanding

    @property
    def deduct_from_this_transaction(self) -> Decimal:
        return self._deduct

    @property
    def remaining_deductions(self) -> Decimal:
        return self._remaining

    @property
    def net_payment_amount(self) -> Decimal:
        return self._net

    @property
    def allocation(self) -> DeductionAllocation:
        return DeductionAllocation(
            deduct_from_this_transaction=self._deduct,
            remaining_deductions=self._remaining,
            net_payment_amount=self._net,
            total_outstanding_advances=self._total_outstanding,
        )

    @property
    def is_open(self) -> bool:
        return self.dialog_result is None

    # ── Operations ───────────────────────────────────────────

    def set_requested_deduction(self, amount) -> DeductionAllocation:
        """Clamp `amount` into [0, total outstanding] and recompute.

        Never raises for out-of-range amounts; raises InvalidStateError once
        the session has been committed or cancelled.
        """
        if not self.is_open:
            raise InvalidStateError(
                f"Deduction session for grower {self.grower_number} is already closed"
            )
        requested = to_decimal(amount)
        total = self._total_outstanding

        if requested < ZERO:
            effective = ZERO
        elif requested > total:
            effective = total
        else:
            effective = requested

        if effective != requested:
            logger.debug(
                "Deduction for grower %s clamped from %s to %s",
                self.grower_number, requested, effective,
            )

        self._deduct = effective
        self._remaining = total - effective
        self._net = self.gross_amount - effective
        return self.allocation

    def validate(self) -> bool:
        return ZERO <= self._deduct <= self._total_outstanding

    def commit(self) -> GrowerPaymentSelection:
        """Write deduct and remaining back onto the selection.

        Raises InvalidStateError, without writing anything, if the session
        is closed or the current deduction is out of bounds.
        """
        if not self.is_open:
            raise InvalidStateError(
                f"Deduction session for grower {self.grower_number} is already closed"
            )
        if not self.validate():
            raise InvalidStateError(
                f"Deduction {self._deduct} for grower {self.grower_number} is outside "
                f"0..{self._total_outstanding}"
            )

        self._selection.deduct_from_this_transaction = self._deduct
        self._selection.remaining_deductions = self._remaining
        self.dialog_result = True

        logger.info(
            "Applied deduction %s for grower %s (remaining %s, net %s)",
            self._deduct, self.grower_number, self._remaining, self._net,
        )
        return self._selection

    def cancel(self) -> None:
        """Discard pending edits; the selection is left untouched."""
        self._reset_from_selection()
        self.dialog_result = False

    # ── Helpers ──────────────────────────────────────────────

    def _reset_from_selection(self) -> None:
        self._deduct = to_decimal(self._selection.deduct_from_this_transaction)
        # Recomputed from the advances; an out-of-range deduct is left for validate()
        self._remaining = self._total_outstanding - self._deduct
        self._net = self.gross_amount - self._deduct
