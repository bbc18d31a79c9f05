"""AdvanceCheque — a cash advance paid to a grower ahead of settlement.

The advance is recovered by deducting from later grower payments.
`current_advance_amount` is the balance still owed; it starts equal to
`advance_amount` and shrinks as deductions are applied.

Lifecycle:  generated → printed → delivered → deducted | voided

Only delivered advances with a positive balance are deductible.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from growerpay.database import Base


class AdvanceCheque(Base):
    __tablename__ = "advance_cheques"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    grower_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    cheque_number: Mapped[str | None] = mapped_column(String(50))

    # ── Amounts ──────────────────────────────────────────────
    advance_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    current_advance_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    advance_date: Mapped[date | None] = mapped_column(Date)
    reason: Mapped[str | None] = mapped_column(Text)

    # ── Status ───────────────────────────────────────────────
    # generated | printed | delivered | deducted | voided
    status: Mapped[str] = mapped_column(String(20), default="generated", index=True)

    # ── Metadata ─────────────────────────────────────────────
    created_by: Mapped[str | None] = mapped_column(String(50))
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @property
    def can_be_deducted(self) -> bool:
        return self.status == "delivered" and self.current_advance_amount > 0
