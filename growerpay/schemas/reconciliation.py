"""Pydantic schemas for reconciliation API responses."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel


class DistributionOut(BaseModel):
    """Payment distribution in the reconciliation working set."""
    id: str
    distribution_number: str
    distribution_date: date
    payment_method: str
    currency: str
    total_amount: Decimal
    total_growers: int
    status: str

    model_config = {"from_attributes": True}


class WorkingSetOut(BaseModel):
    distributions: list[DistributionOut]
    total: int


class PaymentExceptionOut(BaseModel):
    id: str
    payment_distribution_id: str
    report_id: str | None
    exception_type: str
    severity: str
    description: str
    status: str
    resolution: str | None
    resolved_by: str | None
    resolved_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ReconciliationReportOut(BaseModel):
    id: str
    payment_distribution_id: str
    expected_amount: Decimal
    actual_amount: Decimal
    difference: Decimal
    expected_payments: int
    actual_payments: int
    missing_payments: int
    duplicate_payments: int
    status: str
    is_balanced: bool
    completion_percentage: float
    generated_by: str
    generated_at: datetime
    exceptions: list[PaymentExceptionOut]

    model_config = {"from_attributes": True}


class CompleteRequest(BaseModel):
    # Falls back to the system actor when omitted
    actor_id: str | None = None


class CompletionIssues(BaseModel):
    distribution_id: str
    ready: bool
    issues: list[str]


class ExceptionResolve(BaseModel):
    resolution: str
    resolved_by: str | None = None


class StatusStatistics(BaseModel):
    count: int
    total_amount: Decimal


class ReconciliationStatistics(BaseModel):
    by_status: dict[str, StatusStatistics]
