"""PaymentException — a discrepancy found while reconciling a distribution.

Exceptions are raised by a reconciliation run and stay open until someone
resolves them, or until a later run of the same distribution supersedes
them.

Lifecycle:  open → resolved
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from growerpay.database import Base


class PaymentException(Base):
    __tablename__ = "payment_exceptions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    payment_distribution_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("payment_distributions.id"), nullable=False, index=True
    )
    report_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("reconciliation_reports.id"), index=True
    )
    item_id: Mapped[str | None] = mapped_column(String(36))

    # missing_payment | amount_discrepancy | duplicate_payment
    exception_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    # high | medium | low
    severity: Mapped[str] = mapped_column(String(10), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # ── Status ───────────────────────────────────────────────
    # open | resolved
    status: Mapped[str] = mapped_column(String(20), default="open", index=True)
    resolution: Mapped[str | None] = mapped_column(Text)
    resolved_by: Mapped[str | None] = mapped_column(String(50))
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_by: Mapped[str | None] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    report = relationship("ReconciliationReport", back_populates="exceptions")

    @property
    def is_resolved(self) -> bool:
        return self.status == "resolved"
