"""SQLAlchemy-backed collaborators for deductions and reconciliation.

SqlDistributionSource      — lists payment distributions
SqlReconciliationComputer  — reconciles a distribution against the payments
                             issued for its items, records exceptions, and
                             marks distributions completed
SqlAdvanceSource           — loads a grower's outstanding advances

Reconciliation rules:
    expected   = distribution.total_amount
    actual     = sum(item.paid_amount) over items with a payment reference
    difference = expected - actual
    status     = "balanced" if |difference| < RECONCILIATION_TOLERANCE
                 else "discrepancy"

Exceptions recorded per run:
    missing_payment     (high)    item has no payment reference
    duplicate_payment   (medium)  payment reference used by more than one item
    amount_discrepancy  (high if ≥ 1% of expected, else medium)

Open exceptions left by earlier runs of the same distribution are
auto-resolved as superseded, so re-running never piles up duplicates.

Every SQLAlchemy failure is re-raised as DataAccessError.  By default
nothing here commits and the request-scoped session (get_db) owns the
transaction.  With commit_on_success, reconcile and mark_completed commit
before returning, so the work is visible before a distribution lock held
around the call is released.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from growerpay.config import settings
from growerpay.middleware.exceptions import DataAccessError, ReconciliationError
from growerpay.models.advance_cheque import AdvanceCheque
from growerpay.models.payment_distribution import PaymentDistribution, PaymentDistributionItem
from growerpay.models.payment_exception import PaymentException
from growerpay.models.reconciliation_report import ReconciliationReport
from growerpay.services.reconciliation import DistributionStatus

logger = logging.getLogger(__name__)

# Discrepancies at or above this share of the expected total are "high"
HIGH_SEVERITY_PCT = Decimal("1")


def _severity(difference: Decimal, expected: Decimal) -> str:
    """Map an amount discrepancy to a severity level."""
    if not expected:
        return "high"
    pct = abs(difference) / abs(expected) * 100
    return "high" if pct >= HIGH_SEVERITY_PCT else "medium"


def _money(value: Decimal | None) -> Decimal:
    return Decimal(value or 0).quantize(Decimal("0.01"))


class SqlDistributionSource:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all_distributions(self) -> list[PaymentDistribution]:
        try:
            result = await self.db.execute(
                select(PaymentDistribution)
                .where(PaymentDistribution.is_deleted == False)  # noqa: E712
                .order_by(
                    PaymentDistribution.distribution_date,
                    PaymentDistribution.distribution_number,
                )
            )
            return list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Failed to load payment distributions: %s", exc)
            raise DataAccessError("Could not load payment distributions") from exc


class SqlReconciliationComputer:
    def __init__(
        self,
        db: AsyncSession,
        *,
        generated_by: str = settings.system_actor_id,
        tolerance: Decimal = settings.reconciliation_tolerance,
        commit_on_success: bool = False,
    ):
        self.db = db
        self.generated_by = generated_by
        self.tolerance = tolerance
        # Set when callers hold a distribution lock: the write must be
        # committed before the lock is released
        self.commit_on_success = commit_on_success

    # ── Reconcile ────────────────────────────────────────────

    async def reconcile(self, distribution_id: str) -> ReconciliationReport:
        """Compare expected vs issued payments and persist a report."""
        try:
            distribution = await self._get_distribution(distribution_id)
            if distribution is None:
                raise ReconciliationError(
                    f"Payment distribution not found: {distribution_id}",
                    distribution_id=distribution_id,
                )
            if distribution.status == DistributionStatus.COMPLETED.value:
                raise ReconciliationError(
                    f"Payment distribution {distribution.distribution_number} is already completed",
                    distribution_id=distribution_id,
                )
            if distribution.status != DistributionStatus.FINALIZED.value:
                raise ReconciliationError(
                    f"Payment distribution {distribution.distribution_number} is "
                    f"{distribution.status}, only finalized distributions can be reconciled",
                    distribution_id=distribution_id,
                )

            items = [i for i in distribution.items if not i.is_deleted]
            paid = [i for i in items if i.is_paid]
            missing = [i for i in items if not i.is_paid]
            ref_counts = Counter(i.payment_reference for i in paid)
            duplicate_refs = sorted(ref for ref, n in ref_counts.items() if n > 1)

            expected = _money(distribution.total_amount)
            actual = _money(sum((_money(i.paid_amount) for i in paid), Decimal("0")))
            difference = expected - actual
            balanced = abs(difference) < self.tolerance

            await self._supersede_open_exceptions(distribution_id)

            exceptions = []
            for item in missing:
                exceptions.append(PaymentException(
                    payment_distribution_id=distribution_id,
                    item_id=item.id,
                    exception_type="missing_payment",
                    severity="high",
                    description=(
                        f"No payment issued for grower {item.grower_number} "
                        f"({item.grower_name}), expected {_money(item.amount)}"
                    ),
                    created_by=self.generated_by,
                ))
            for ref in duplicate_refs:
                exceptions.append(PaymentException(
                    payment_distribution_id=distribution_id,
                    exception_type="duplicate_payment",
                    severity="medium",
                    description=f"Payment reference {ref} is used by {ref_counts[ref]} items",
                    created_by=self.generated_by,
                ))
            if not balanced:
                exceptions.append(PaymentException(
                    payment_distribution_id=distribution_id,
                    exception_type="amount_discrepancy",
                    severity=_severity(difference, expected),
                    description=(
                        f"Expected {expected}, actual {actual}, difference {difference:+}"
                    ),
                    created_by=self.generated_by,
                ))

            report = ReconciliationReport(
                payment_distribution_id=distribution_id,
                expected_amount=expected,
                actual_amount=actual,
                difference=difference,
                expected_payments=len(items),
                actual_payments=len(paid),
                missing_payments=len(missing),
                duplicate_payments=sum(ref_counts[ref] - 1 for ref in duplicate_refs),
                status="balanced" if balanced else "discrepancy",
                generated_by=self.generated_by,
                generated_at=datetime.utcnow(),
                exceptions=exceptions,
            )
            self.db.add(report)
            await self.db.flush()
            await self._commit_if_requested()
        except SQLAlchemyError as exc:
            logger.error("Reconciliation of distribution %s failed: %s", distribution_id, exc)
            raise DataAccessError(
                f"Could not reconcile payment distribution {distribution_id}"
            ) from exc

        logger.info(
            "Reconciled distribution %s: expected %s, actual %s, difference %s, %d exceptions",
            distribution.distribution_number, expected, actual, difference, len(exceptions),
        )
        return report

    # ── Complete ─────────────────────────────────────────────

    async def mark_completed(self, distribution_id: str, actor_id: str) -> bool:
        """Mark a finalized, reconciled distribution completed.

        Returns False when nothing was updated: the distribution is missing,
        not finalized, or has never been reconciled.
        """
        try:
            has_report = (
                await self.db.execute(
                    select(func.count(ReconciliationReport.id)).where(
                        ReconciliationReport.payment_distribution_id == distribution_id
                    )
                )
            ).scalar() or 0
            if not has_report:
                logger.warning(
                    "Distribution %s has no reconciliation report; not completing",
                    distribution_id,
                )
                return False

            distribution = await self._get_distribution(distribution_id)
            if (
                distribution is None
                or distribution.status != DistributionStatus.FINALIZED.value
            ):
                return False

            now = datetime.utcnow()
            distribution.status = DistributionStatus.COMPLETED.value
            distribution.completed_by = actor_id
            distribution.completed_at = now
            distribution.updated_at = now
            await self.db.flush()
            await self._commit_if_requested()
        except SQLAlchemyError as exc:
            logger.error("Completing distribution %s failed: %s", distribution_id, exc)
            raise DataAccessError(
                f"Could not mark payment distribution {distribution_id} completed"
            ) from exc

        return True

    # ── Completion checks / exceptions / statistics ──────────

    async def validate_for_completion(self, distribution_id: str) -> list[str]:
        """List the reasons a distribution is not ready to complete."""
        issues: list[str] = []
        try:
            open_count = (
                await self.db.execute(
                    select(func.count(PaymentException.id)).where(
                        PaymentException.payment_distribution_id == distribution_id,
                        PaymentException.status == "open",
                    )
                )
            ).scalar() or 0
            missing_count = (
                await self.db.execute(
                    select(func.count(PaymentDistributionItem.id)).where(
                        PaymentDistributionItem.payment_distribution_id == distribution_id,
                        PaymentDistributionItem.is_deleted == False,  # noqa: E712
                        PaymentDistributionItem.payment_reference.is_(None),
                    )
                )
            ).scalar() or 0
            report_count = (
                await self.db.execute(
                    select(func.count(ReconciliationReport.id)).where(
                        ReconciliationReport.payment_distribution_id == distribution_id
                    )
                )
            ).scalar() or 0
        except SQLAlchemyError as exc:
            raise DataAccessError(
                f"Could not validate payment distribution {distribution_id}"
            ) from exc

        if open_count:
            issues.append(f"{open_count} unresolved exceptions found")
        if missing_count:
            issues.append(f"{missing_count} missing payment records found")
        if not report_count:
            issues.append("Distribution has not been reconciled")
        return issues

    async def get_exceptions(
        self,
        distribution_id: str | None = None,
        open_only: bool = True,
    ) -> list[PaymentException]:
        stmt = select(PaymentException)
        if distribution_id:
            stmt = stmt.where(PaymentException.payment_distribution_id == distribution_id)
        if open_only:
            stmt = stmt.where(PaymentException.status == "open")
        stmt = stmt.order_by(PaymentException.created_at.desc())
        try:
            result = await self.db.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise DataAccessError("Could not load payment exceptions") from exc

    async def resolve_exception(
        self, exception_id: str, resolution: str, resolved_by: str
    ) -> bool:
        """Resolve an open exception; False if it is missing or already resolved."""
        try:
            result = await self.db.execute(
                select(PaymentException).where(
                    PaymentException.id == exception_id,
                    PaymentException.status == "open",
                )
            )
            exception = result.scalar_one_or_none()
            if exception is None:
                return False

            exception.status = "resolved"
            exception.resolution = resolution
            exception.resolved_by = resolved_by
            exception.resolved_at = datetime.utcnow()
            await self.db.flush()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Could not resolve payment exception {exception_id}") from exc

        logger.info("Payment exception %s resolved by %s", exception_id, resolved_by)
        return True

    async def get_statistics(self) -> dict[str, dict]:
        """Distribution count and total amount per status."""
        try:
            result = await self.db.execute(
                select(
                    PaymentDistribution.status,
                    func.count(PaymentDistribution.id),
                    func.coalesce(func.sum(PaymentDistribution.total_amount), 0),
                )
                .where(PaymentDistribution.is_deleted == False)  # noqa: E712
                .group_by(PaymentDistribution.status)
            )
            rows = result.all()
        except SQLAlchemyError as exc:
            raise DataAccessError("Could not load reconciliation statistics") from exc

        return {
            status: {"count": count, "total_amount": _money(total)}
            for status, count, total in rows
        }

    # ── Helpers ──────────────────────────────────────────────

    async def _commit_if_requested(self) -> None:
        if self.commit_on_success:
            await self.db.commit()

    async def _get_distribution(self, distribution_id: str) -> PaymentDistribution | None:
        # Re-read the row even if the session already holds it; the status
        # may have changed since the working set was loaded
        result = await self.db.execute(
            select(PaymentDistribution)
            .where(
                PaymentDistribution.id == distribution_id,
                PaymentDistribution.is_deleted == False,  # noqa: E712
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _supersede_open_exceptions(self, distribution_id: str) -> None:
        old_open = await self.db.execute(
            select(PaymentException).where(
                PaymentException.payment_distribution_id == distribution_id,
                PaymentException.status == "open",
            )
        )
        for old in old_open.scalars().all():
            old.status = "resolved"
            old.resolution = "Auto-resolved: superseded by a newer reconciliation run"
            old.resolved_by = self.generated_by
            old.resolved_at = datetime.utcnow()
        await self.db.flush()


class SqlAdvanceSource:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_outstanding_advances(self, grower_id: str) -> list[AdvanceCheque]:
        """Delivered, undeleted advances with a balance left, oldest first."""
        try:
            result = await self.db.execute(
                select(AdvanceCheque)
                .where(
                    AdvanceCheque.grower_id == grower_id,
                    AdvanceCheque.status == "delivered",
                    AdvanceCheque.current_advance_amount > 0,
                    AdvanceCheque.is_deleted == False,  # noqa: E712
                )
                .order_by(AdvanceCheque.advance_date, AdvanceCheque.created_at)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Failed to load advances for grower %s: %s", grower_id, exc)
            raise DataAccessError(f"Could not load advances for grower {grower_id}") from exc
