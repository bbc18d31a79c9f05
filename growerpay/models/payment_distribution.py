"""PaymentDistribution — one disbursement run paying many growers.

A distribution is created upstream, moves through draft/generated, and
arrives here as `finalized`.  Reconciliation compares its `total_amount`
against the payments actually issued for its items.  Producing a
reconciliation report does not change the stored status; marking the
distribution complete does.

Lifecycle (this package):  finalized → completed
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from growerpay.database import Base


class PaymentDistribution(Base):
    __tablename__ = "payment_distributions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    distribution_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    distribution_date: Mapped[date] = mapped_column(Date, nullable=False)

    # cheque | electronic | both
    payment_method: Mapped[str] = mapped_column(String(20), default="cheque")

    # ── Totals ───────────────────────────────────────────────
    currency: Mapped[str] = mapped_column(String(3), default="CAD")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_growers: Mapped[int] = mapped_column(Integer, default=0)

    # ── Status ───────────────────────────────────────────────
    # draft | generated | finalized | completed | voided
    status: Mapped[str] = mapped_column(String(20), default="draft", index=True)
    completed_by: Mapped[str | None] = mapped_column(String(50))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Metadata ─────────────────────────────────────────────
    created_by: Mapped[str | None] = mapped_column(String(50))
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    items = relationship(
        "PaymentDistributionItem",
        back_populates="distribution",
        lazy="selectin",
        order_by="PaymentDistributionItem.grower_number",
    )


class PaymentDistributionItem(Base):
    """One grower's line within a distribution."""

    __tablename__ = "payment_distribution_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    payment_distribution_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("payment_distributions.id"), nullable=False, index=True
    )
    grower_id: Mapped[str | None] = mapped_column(String(36))
    grower_name: Mapped[str] = mapped_column(String(255), nullable=False)
    grower_number: Mapped[str] = mapped_column(String(20), nullable=False)

    # Expected amount for this grower, after advance deductions
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    advance_deduction_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00")
    )

    # cheque | electronic
    payment_method: Mapped[str] = mapped_column(String(20), default="cheque")
    # Cheque number or EFT reference; null until a payment is issued
    payment_reference: Mapped[str | None] = mapped_column(String(50), index=True)
    paid_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    distribution = relationship("PaymentDistribution", back_populates="items")

    @property
    def is_paid(self) -> bool:
        return self.payment_reference is not None
