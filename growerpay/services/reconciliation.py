"""Reconciliation workflow — move finalized distributions to completed.

The ReconciliationCoordinator drives one reconciliation session:

    load_working_set()        fetch distributions, keep the finalized ones
    reconcile_one(id)         run the reconciliation computation for one
                              distribution; its report becomes current_report
    complete_one(id, actor)   mark the distribution completed, then reload
                              (which drops it from the working set)

Per distribution:  finalized → reconciled → completed.  Reconciling again
is allowed and simply replaces the current report.

State is only replaced after the collaborator call succeeds, so a failure
leaves the working set and current report exactly as they were.  The
`is_reconciling` flag is advisory: it tells the caller an operation is in
flight but does not stop a second session elsewhere.  For that, pass a
Redis-backed lock provider (see growerpay.utils.locks).

Observers register with `subscribe(callback)`; the callback receives the
name of each field that changed.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Protocol, Sequence

from growerpay.config import settings
from growerpay.middleware.exceptions import (
    ReconciliationError,
    ResourceNotFoundError,
)
from growerpay.utils.locks import DistributionLockProvider, NullDistributionLock

logger = logging.getLogger(__name__)


class DistributionStatus(str, enum.Enum):
    FINALIZED = "finalized"
    RECONCILED = "reconciled"
    COMPLETED = "completed"


# ── Collaborator contracts ───────────────────────────────────


class DistributionSource(Protocol):
    async def get_all_distributions(self) -> Sequence[Any]:
        """Return every distribution; raises DataAccessError on store failure."""
        ...


class ReconciliationComputer(Protocol):
    async def reconcile(self, distribution_id: str) -> Any:
        """Return a ReconciliationReport; raises ReconciliationError if rejected."""
        ...

    async def mark_completed(self, distribution_id: str, actor_id: str) -> bool:
        """Mark completed; raises DataAccessError on store failure."""
        ...


class ReportPublisher(Protocol):
    async def generate(self, report: Any) -> Any: ...

    async def export(self, report: Any, destination: str) -> Any: ...


# ── Coordinator ──────────────────────────────────────────────


class ReconciliationCoordinator:
    """One reconciliation session over the finalized distributions."""

    def __init__(
        self,
        source: DistributionSource,
        computer: ReconciliationComputer,
        *,
        lock_provider: DistributionLockProvider | None = None,
        publisher: ReportPublisher | None = None,
        system_actor_id: str = settings.system_actor_id,
    ):
        self._source = source
        self._computer = computer
        self._locks = lock_provider or NullDistributionLock()
        self._publisher = publisher
        self._system_actor_id = system_actor_id

        self._distributions: tuple = ()
        self._current_report: Any | None = None
        self._is_reconciling = False
        self._reconciled_ids: set[str] = set()
        self._listeners: list[Callable[[str], None]] = []

    # ── Observable state ─────────────────────────────────────

    @property
    def distributions_for_reconciliation(self) -> tuple:
        return self._distributions

    @property
    def current_report(self) -> Any | None:
        return self._current_report

    @property
    def is_reconciling(self) -> bool:
        return self._is_reconciling

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def is_reconciled(self, distribution_id: str) -> bool:
        """True if a report was produced for the id during this session."""
        return distribution_id in self._reconciled_ids

    # ── Operations ───────────────────────────────────────────

    async def load_working_set(self) -> tuple:
        """Replace the working set with the finalized distributions."""
        distributions = await self._source.get_all_distributions()
        finalized = tuple(
            d for d in distributions
            if _status_of(d) == DistributionStatus.FINALIZED.value
        )

        self._distributions = finalized
        # Ids that left the working set are no longer tracked
        self._reconciled_ids &= {_id_of(d) for d in finalized}
        logger.info("Loaded %d finalized distributions for reconciliation", len(finalized))
        self._notify("distributions_for_reconciliation")
        return finalized

    async def reconcile_one(self, distribution_id: str) -> Any:
        """Reconcile one distribution and make its report current."""
        self._require_in_working_set(distribution_id)

        self._set_reconciling(True)
        try:
            async with self._locks.hold(distribution_id):
                report = await self._computer.reconcile(distribution_id)
        except Exception:
            logger.warning("Reconciliation of distribution %s failed", distribution_id)
            raise
        finally:
            self._set_reconciling(False)

        self._current_report = report
        self._reconciled_ids.add(distribution_id)
        logger.info("Reconciled distribution %s", distribution_id)
        self._notify("current_report")
        return report

    async def complete_one(self, distribution_id: str, actor_id: str | None = None) -> tuple:
        """Mark a distribution completed and reload the working set."""
        self._require_in_working_set(distribution_id)
        actor = actor_id or self._system_actor_id

        async with self._locks.hold(distribution_id):
            completed = await self._computer.mark_completed(distribution_id, actor)
        if not completed:
            raise ReconciliationError(
                f"Payment distribution {distribution_id} could not be marked completed",
                distribution_id=distribution_id,
            )

        logger.info("Distribution %s marked completed by %s", distribution_id, actor)
        return await self.load_working_set()

    async def generate_report(self) -> Any | None:
        """Hand the current report to the report publisher, if any."""
        if self._publisher is None or self._current_report is None:
            return None
        return await self._publisher.generate(self._current_report)

    async def export_report(self, destination: str) -> Any | None:
        """Export the current report through the report publisher, if any."""
        if self._publisher is None or self._current_report is None:
            return None
        return await self._publisher.export(self._current_report, destination)

    # ── Helpers ──────────────────────────────────────────────

    def _require_in_working_set(self, distribution_id: str) -> None:
        if not any(_id_of(d) == distribution_id for d in self._distributions):
            raise ResourceNotFoundError("PaymentDistribution", distribution_id)

    def _set_reconciling(self, value: bool) -> None:
        self._is_reconciling = value
        self._notify("is_reconciling")

    def _notify(self, field_name: str) -> None:
        for listener in list(self._listeners):
            listener(field_name)


def _id_of(distribution) -> str:
    return distribution.id


def _status_of(distribution) -> str:
    status = distribution.status
    return status.value if isinstance(status, enum.Enum) else status
