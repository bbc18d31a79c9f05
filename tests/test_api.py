"""Deduction and reconciliation endpoint tests."""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from growerpay.middleware.exceptions import DataAccessError


def _deduction_body(requested: str, grower_id: str = "grower-001", **selection) -> dict:
    return {
        "selection": {
            "grower_id": grower_id,
            "grower_name": "Fraser Valley Berries",
            "grower_number": "G-1042",
            "consolidated_amount": "1000.00",
            **selection,
        },
        "requested_deduction": requested,
    }


@pytest.mark.api
@pytest.mark.asyncio
class TestHealth:

    async def test_health(self, client: AsyncClient):
        """Liveness check needs no backing services."""
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["service"] == "GrowerPay"


@pytest.mark.api
@pytest.mark.asyncio
class TestDeductionEndpoints:
    """Deduction preview and apply."""

    async def test_allocate_clamps_to_outstanding(self, client: AsyncClient):
        """Requests above the advance balance are clamped, not rejected."""
        resp = await client.post("/api/deductions/allocate", json=_deduction_body("500.00"))
        assert resp.status_code == 200
        data = resp.json()
        assert Decimal(data["requested_deduction"]) == Decimal("500.00")
        assert Decimal(data["deduct_from_this_transaction"]) == Decimal("300.00")
        assert Decimal(data["remaining_deductions"]) == Decimal("0")
        assert Decimal(data["net_payment_amount"]) == Decimal("700.00")
        assert Decimal(data["total_outstanding_advances"]) == Decimal("300.00")
        assert data["advance_count"] == 2
        assert data["is_valid"] is True

    async def test_allocate_negative_request(self, client: AsyncClient):
        """Negative requests deduct nothing."""
        resp = await client.post("/api/deductions/allocate", json=_deduction_body("-25"))
        assert resp.status_code == 200
        data = resp.json()
        assert Decimal(data["deduct_from_this_transaction"]) == 0
        assert Decimal(data["remaining_deductions"]) == Decimal("300.00")
        assert Decimal(data["net_payment_amount"]) == Decimal("1000.00")

    async def test_allocate_grower_without_advances(self, client: AsyncClient):
        """A grower with no outstanding advances gets no deduction."""
        resp = await client.post(
            "/api/deductions/allocate",
            json=_deduction_body("50.00", grower_id="grower-999"),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert Decimal(data["deduct_from_this_transaction"]) == 0
        assert data["advance_count"] == 0

    async def test_commit_returns_updated_selection(self, client: AsyncClient):
        """Commit writes deduct and remaining onto the selection."""
        resp = await client.post("/api/deductions/commit", json=_deduction_body("120.00"))
        assert resp.status_code == 200
        data = resp.json()
        assert data["grower_id"] == "grower-001"
        assert Decimal(data["deduct_from_this_transaction"]) == Decimal("120.00")
        assert Decimal(data["remaining_deductions"]) == Decimal("180.00")
        assert Decimal(data["net_payment_amount"]) == Decimal("880.00")

    async def test_commit_clamps_before_applying(self, client: AsyncClient):
        """An oversized request is clamped, so commit always succeeds."""
        resp = await client.post("/api/deductions/commit", json=_deduction_body("5000.00"))
        assert resp.status_code == 200
        data = resp.json()
        assert Decimal(data["deduct_from_this_transaction"]) == Decimal("300.00")
        assert Decimal(data["remaining_deductions"]) == 0
        assert Decimal(data["net_payment_amount"]) == Decimal("700.00")

    async def test_negative_consolidated_amount_rejected(self, client: AsyncClient):
        """Validation errors use the standard envelope."""
        resp = await client.post(
            "/api/deductions/allocate",
            json=_deduction_body("10", consolidated_amount="-1.00"),
        )
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["errors"]

    async def test_missing_requested_deduction_rejected(self, client: AsyncClient):
        """requested_deduction is required."""
        body = _deduction_body("10")
        del body["requested_deduction"]
        resp = await client.post("/api/deductions/allocate", json=body)
        assert resp.status_code == 422


@pytest.mark.api
@pytest.mark.asyncio
class TestReconciliationEndpoints:
    """Working set, reconcile and complete."""

    async def test_list_finalized_distributions(self, client: AsyncClient):
        """Only finalized distributions are listed."""
        resp = await client.get("/api/reconciliation/distributions")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 2
        assert [d["id"] for d in data["distributions"]] == ["dist-1", "dist-3"]
        assert data["distributions"][0]["distribution_number"] == "PD-2026-001"

    async def test_store_failure_returns_503(self, client: AsyncClient, distribution_source):
        """Store outages surface as DATA_ACCESS_ERROR."""
        distribution_source.fail = True
        resp = await client.get("/api/reconciliation/distributions")
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "DATA_ACCESS_ERROR"

    async def test_reconcile_returns_report(self, client: AsyncClient):
        """Reconciling a finalized distribution returns its report."""
        resp = await client.post("/api/reconciliation/distributions/dist-3/reconcile")
        assert resp.status_code == 200
        data = resp.json()
        assert data["payment_distribution_id"] == "dist-3"
        assert Decimal(data["expected_amount"]) == Decimal("2500.50")
        assert Decimal(data["difference"]) == 0
        assert data["status"] == "balanced"
        assert data["exceptions"] == []

    async def test_reconcile_draft_is_not_found(self, client: AsyncClient, reconciliation_computer):
        """Distributions outside the working set return 404."""
        resp = await client.post("/api/reconciliation/distributions/dist-2/reconcile")
        assert resp.status_code == 404
        error = resp.json()["error"]
        assert error["code"] == "RESOURCE_NOT_FOUND"
        assert "dist-2" in error["message"]
        assert reconciliation_computer.reconcile_calls == []

    async def test_reconcile_data_failure(self, client: AsyncClient, reconciliation_computer):
        """Computation store failures return 503."""
        reconciliation_computer.reconcile_error = DataAccessError()
        resp = await client.post("/api/reconciliation/distributions/dist-1/reconcile")
        assert resp.status_code == 503

    async def test_complete_with_actor(self, client: AsyncClient, reconciliation_computer):
        """Completing returns the remaining working set."""
        await client.post("/api/reconciliation/distributions/dist-1/reconcile")
        resp = await client.post(
            "/api/reconciliation/distributions/dist-1/complete",
            json={"actor_id": "user-7"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert [d["id"] for d in data["distributions"]] == ["dist-3"]
        assert reconciliation_computer.completed == [("dist-1", "user-7")]

    async def test_complete_without_body_uses_system_actor(
        self, client: AsyncClient, reconciliation_computer,
    ):
        """Omitted actor falls back to the system actor."""
        resp = await client.post("/api/reconciliation/distributions/dist-3/complete")
        assert resp.status_code == 200
        assert reconciliation_computer.completed == [("dist-3", "SYSTEM")]

    async def test_complete_refused(self, client: AsyncClient, reconciliation_computer):
        """A refused completion returns RECONCILIATION_ERROR."""
        reconciliation_computer.complete_result = False
        resp = await client.post("/api/reconciliation/distributions/dist-1/complete")
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "RECONCILIATION_ERROR"

    async def test_completion_issues(self, client: AsyncClient):
        """Issues clear once the distribution is reconciled."""
        resp = await client.get("/api/reconciliation/distributions/dist-1/completion-issues")
        assert resp.status_code == 200
        assert resp.json() == {
            "distribution_id": "dist-1",
            "ready": False,
            "issues": ["Distribution has not been reconciled"],
        }

        await client.post("/api/reconciliation/distributions/dist-1/reconcile")
        resp = await client.get("/api/reconciliation/distributions/dist-1/completion-issues")
        assert resp.json()["ready"] is True


@pytest.mark.api
@pytest.mark.asyncio
class TestExceptionAndStatisticsEndpoints:

    async def test_list_exceptions(self, client: AsyncClient):
        """Exceptions list for a distribution."""
        resp = await client.get(
            "/api/reconciliation/distributions/dist-1/exceptions",
            params={"open_only": "false"},
        )
        assert resp.status_code == 200
        assert resp.json() == []

    async def test_resolve_exception(self, client: AsyncClient, reconciliation_computer):
        """Resolving an open exception returns 204."""
        resp = await client.patch(
            "/api/reconciliation/exceptions/exc-1",
            json={"resolution": "Cheque reissued"},
        )
        assert resp.status_code == 204
        assert reconciliation_computer.resolved == [("exc-1", "Cheque reissued", "SYSTEM")]

    async def test_resolve_unknown_exception(self, client: AsyncClient):
        """Unknown or already resolved exceptions return 404."""
        resp = await client.patch(
            "/api/reconciliation/exceptions/exc-404",
            json={"resolution": "n/a", "resolved_by": "user-7"},
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    async def test_statistics(self, client: AsyncClient):
        """Counts and totals per status."""
        resp = await client.get("/api/reconciliation/statistics")
        assert resp.status_code == 200
        by_status = resp.json()["by_status"]
        assert by_status["finalized"]["count"] == 2
        assert Decimal(by_status["finalized"]["total_amount"]) == Decimal("3500.50")
        assert by_status["draft"]["count"] == 1
        assert by_status["completed"]["count"] == 1
