"""ReconciliationReport — outcome of reconciling one payment distribution.

Compares the distribution's recorded total against the sum of payments
actually issued for its items.  Each run writes a new report; the most
recent one is what the reconciliation screen shows.

difference = expected_amount - actual_amount
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from growerpay.config import settings
from growerpay.database import Base


class ReconciliationReport(Base):
    __tablename__ = "reconciliation_reports"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    payment_distribution_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("payment_distributions.id"), nullable=False, index=True
    )

    # ── Amounts ──────────────────────────────────────────────
    expected_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    actual_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    difference: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # ── Payment counts ───────────────────────────────────────
    expected_payments: Mapped[int] = mapped_column(Integer, default=0)
    actual_payments: Mapped[int] = mapped_column(Integer, default=0)
    missing_payments: Mapped[int] = mapped_column(Integer, default=0)
    duplicate_payments: Mapped[int] = mapped_column(Integer, default=0)

    # balanced | discrepancy
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    generated_by: Mapped[str] = mapped_column(String(50), nullable=False)
    generated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    exceptions = relationship(
        "PaymentException",
        back_populates="report",
        lazy="selectin",
        order_by="PaymentException.created_at",
    )

    @property
    def is_balanced(self) -> bool:
        return abs(self.difference) < settings.reconciliation_tolerance

    @property
    def has_exceptions(self) -> bool:
        return len(self.exceptions) > 0

    @property
    def completion_percentage(self) -> float:
        if not self.expected_payments:
            return 0.0
        return round(self.actual_payments / self.expected_payments * 100, 2)
