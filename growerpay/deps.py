"""FastAPI dependencies wiring the services to the request session.

Dependencies:
  get_distribution_source      → SqlDistributionSource on the request session
  get_reconciliation_computer  → SqlReconciliationComputer on the request session
  get_advance_source           → SqlAdvanceSource on the request session
  get_reconciliation_coordinator → a fresh coordinator per request, with
                                   the configured distribution lock

Tests swap the SQL collaborators for in-memory ones via
app.dependency_overrides.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from growerpay.config import settings
from growerpay.database import get_db
from growerpay.services.distribution_store import (
    SqlAdvanceSource,
    SqlDistributionSource,
    SqlReconciliationComputer,
)
from growerpay.services.reconciliation import ReconciliationCoordinator
from growerpay.utils.locks import DistributionLockProvider, get_distribution_lock


async def get_distribution_source(
    db: AsyncSession = Depends(get_db),
) -> SqlDistributionSource:
    return SqlDistributionSource(db)


async def get_reconciliation_computer(
    db: AsyncSession = Depends(get_db),
) -> SqlReconciliationComputer:
    # Under a distribution lock the write is committed before the lock is released
    return SqlReconciliationComputer(
        db, commit_on_success=settings.distribution_locks_enabled,
    )


async def get_advance_source(
    db: AsyncSession = Depends(get_db),
) -> SqlAdvanceSource:
    return SqlAdvanceSource(db)


async def get_reconciliation_coordinator(
    source: SqlDistributionSource = Depends(get_distribution_source),
    computer: SqlReconciliationComputer = Depends(get_reconciliation_computer),
    locks: DistributionLockProvider = Depends(get_distribution_lock),
) -> ReconciliationCoordinator:
    """Build a coordinator and load its working set."""
    coordinator = ReconciliationCoordinator(
        source,
        computer,
        lock_provider=locks,
        system_actor_id=settings.system_actor_id,
    )
    await coordinator.load_working_set()
    return coordinator
