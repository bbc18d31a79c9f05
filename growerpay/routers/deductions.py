"""Grower deduction dialog — allocate current payment against advances.

Endpoints:
    POST /api/deductions/allocate   Preview the clamped deduction for a grower
    POST /api/deductions/commit     Apply it to the selection and return it

Both load the grower's outstanding advances and run a DeductionAllocator
for the request.  Persisting the updated selection is the caller's job.
"""

from fastapi import APIRouter, Depends

from growerpay.deps import get_advance_source
from growerpay.schemas.deduction import (
    DeductionAllocationOut,
    DeductionRequest,
    GrowerSelectionOut,
)
from growerpay.services.deduction import DeductionAllocator, GrowerPaymentSelection
from growerpay.services.distribution_store import SqlAdvanceSource

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────

async def _build_allocator(
    body: DeductionRequest,
    advances: SqlAdvanceSource,
) -> DeductionAllocator:
    sel = body.selection
    selection = GrowerPaymentSelection(
        grower_id=sel.grower_id,
        grower_name=sel.grower_name,
        grower_number=sel.grower_number,
        consolidated_amount=sel.consolidated_amount,
        deduct_from_this_transaction=sel.deduct_from_this_transaction,
        remaining_deductions=sel.remaining_deductions,
    )
    outstanding = await advances.get_outstanding_advances(sel.grower_id)
    allocator = DeductionAllocator(selection, outstanding)
    allocator.set_requested_deduction(body.requested_deduction)
    return allocator


# ── POST /api/deductions/allocate ────────────────────────────

@router.post("/allocate", response_model=DeductionAllocationOut)
async def allocate_deduction(
    body: DeductionRequest,
    advances: SqlAdvanceSource = Depends(get_advance_source),
):
    """Clamp the requested deduction and return the derived amounts."""
    allocator = await _build_allocator(body, advances)
    allocation = allocator.allocation

    return DeductionAllocationOut(
        grower_number=allocator.grower_number,
        requested_deduction=body.requested_deduction,
        deduct_from_this_transaction=allocation.deduct_from_this_transaction,
        remaining_deductions=allocation.remaining_deductions,
        net_payment_amount=allocation.net_payment_amount,
        total_outstanding_advances=allocation.total_outstanding_advances,
        advance_count=len(allocator.outstanding_advances),
        is_valid=allocator.validate(),
    )


# ── POST /api/deductions/commit ──────────────────────────────

@router.post("/commit", response_model=GrowerSelectionOut)
async def commit_deduction(
    body: DeductionRequest,
    advances: SqlAdvanceSource = Depends(get_advance_source),
):
    """Apply the clamped deduction to the grower selection."""
    allocator = await _build_allocator(body, advances)
    selection = allocator.commit()
    return GrowerSelectionOut.model_validate(selection)
