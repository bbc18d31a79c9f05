"""Aggregate model imports for Alembic auto-detection."""

from growerpay.models.advance_cheque import AdvanceCheque  # noqa: F401
from growerpay.models.payment_distribution import (  # noqa: F401
    PaymentDistribution,
    PaymentDistributionItem,
)
from growerpay.models.reconciliation_report import ReconciliationReport  # noqa: F401
from growerpay.models.payment_exception import PaymentException  # noqa: F401
