"""Pydantic schemas for the grower deduction dialog."""

from decimal import Decimal

from pydantic import BaseModel, field_validator


class GrowerSelectionIn(BaseModel):
    grower_id: str
    grower_name: str
    grower_number: str
    consolidated_amount: Decimal
    deduct_from_this_transaction: Decimal = Decimal("0")
    remaining_deductions: Decimal = Decimal("0")

    @field_validator("consolidated_amount")
    @classmethod
    def amount_not_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("consolidated_amount must not be negative")
        return v


class DeductionRequest(BaseModel):
    selection: GrowerSelectionIn
    # Any value; out-of-range amounts are clamped, not rejected
    requested_deduction: Decimal


class DeductionAllocationOut(BaseModel):
    grower_number: str
    requested_deduction: Decimal
    deduct_from_this_transaction: Decimal
    remaining_deductions: Decimal
    net_payment_amount: Decimal
    total_outstanding_advances: Decimal
    advance_count: int
    is_valid: bool


class GrowerSelectionOut(BaseModel):
    grower_id: str | None = None
    grower_name: str
    grower_number: str
    consolidated_amount: Decimal
    deduct_from_this_transaction: Decimal
    remaining_deductions: Decimal
    net_payment_amount: Decimal

    model_config = {"from_attributes": True}
