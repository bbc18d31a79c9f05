"""Reconciliation router — thin wrappers over ReconciliationCoordinator.

Endpoints:
    GET   /distributions                          Finalized working set
    POST  /distributions/{id}/reconcile           Reconcile one distribution
    POST  /distributions/{id}/complete            Mark completed, return working set
    GET   /distributions/{id}/completion-issues   Why it isn't ready to complete
    GET   /distributions/{id}/exceptions          Exceptions for a distribution
    PATCH /exceptions/{exception_id}              Resolve an exception
    GET   /statistics                             Counts and totals per status

Each request gets its own coordinator with a freshly loaded working set.
"""

from fastapi import APIRouter, Depends, Query

from growerpay.config import settings
from growerpay.deps import get_reconciliation_computer, get_reconciliation_coordinator
from growerpay.middleware.exceptions import ResourceNotFoundError
from growerpay.schemas.reconciliation import (
    CompleteRequest,
    CompletionIssues,
    DistributionOut,
    ExceptionResolve,
    PaymentExceptionOut,
    ReconciliationReportOut,
    ReconciliationStatistics,
    WorkingSetOut,
)
from growerpay.services.distribution_store import SqlReconciliationComputer
from growerpay.services.reconciliation import ReconciliationCoordinator

router = APIRouter()


def _working_set(coordinator: ReconciliationCoordinator) -> WorkingSetOut:
    distributions = coordinator.distributions_for_reconciliation
    return WorkingSetOut(
        distributions=[DistributionOut.model_validate(d) for d in distributions],
        total=len(distributions),
    )


# ── Working set ──────────────────────────────────────────────

@router.get("/distributions", response_model=WorkingSetOut)
async def list_distributions(
    coordinator: ReconciliationCoordinator = Depends(get_reconciliation_coordinator),
):
    """Finalized distributions awaiting reconciliation."""
    return _working_set(coordinator)


# ── Reconcile ────────────────────────────────────────────────

@router.post("/distributions/{distribution_id}/reconcile", response_model=ReconciliationReportOut)
async def reconcile_distribution(
    distribution_id: str,
    coordinator: ReconciliationCoordinator = Depends(get_reconciliation_coordinator),
):
    return await coordinator.reconcile_one(distribution_id)


# ── Complete ─────────────────────────────────────────────────

@router.post("/distributions/{distribution_id}/complete", response_model=WorkingSetOut)
async def complete_distribution(
    distribution_id: str,
    body: CompleteRequest | None = None,
    coordinator: ReconciliationCoordinator = Depends(get_reconciliation_coordinator),
):
    """Mark a reconciled distribution completed; returns the remaining working set."""
    actor_id = body.actor_id if body else None
    await coordinator.complete_one(distribution_id, actor_id)
    return _working_set(coordinator)


@router.get(
    "/distributions/{distribution_id}/completion-issues",
    response_model=CompletionIssues,
)
async def completion_issues(
    distribution_id: str,
    computer: SqlReconciliationComputer = Depends(get_reconciliation_computer),
):
    issues = await computer.validate_for_completion(distribution_id)
    return CompletionIssues(
        distribution_id=distribution_id,
        ready=not issues,
        issues=issues,
    )


# ── Exceptions ───────────────────────────────────────────────

@router.get(
    "/distributions/{distribution_id}/exceptions",
    response_model=list[PaymentExceptionOut],
)
async def list_exceptions(
    distribution_id: str,
    open_only: bool = Query(True, description="Only unresolved exceptions"),
    computer: SqlReconciliationComputer = Depends(get_reconciliation_computer),
):
    return await computer.get_exceptions(distribution_id, open_only=open_only)


@router.patch("/exceptions/{exception_id}", status_code=204)
async def resolve_exception(
    exception_id: str,
    body: ExceptionResolve,
    computer: SqlReconciliationComputer = Depends(get_reconciliation_computer),
):
    """Resolve an open payment exception."""
    resolved = await computer.resolve_exception(
        exception_id,
        body.resolution,
        body.resolved_by or settings.system_actor_id,
    )
    if not resolved:
        raise ResourceNotFoundError("Open payment exception", exception_id)


# ── Statistics ───────────────────────────────────────────────

@router.get("/statistics", response_model=ReconciliationStatistics)
async def reconciliation_statistics(
    computer: SqlReconciliationComputer = Depends(get_reconciliation_computer),
):
    return ReconciliationStatistics(by_status=await computer.get_statistics())
