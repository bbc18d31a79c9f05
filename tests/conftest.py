"""Pytest configuration and fixtures for GrowerPay tests.

Provides in-memory collaborators for the reconciliation workflow, an
in-memory SQLite session for the SQL-backed services, and an HTTP client
with the SQL collaborators swapped out.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import growerpay.models  # noqa: F401  registers tables on Base.metadata
from growerpay.database import Base
from growerpay.deps import (
    get_advance_source,
    get_distribution_source,
    get_reconciliation_computer,
)
from growerpay.main import app
from growerpay.middleware.exceptions import DataAccessError


# ── In-memory collaborators ──────────────────────────────────────

@dataclass
class FakeDistribution:
    id: str
    distribution_number: str
    status: str = "finalized"
    distribution_date: date = date(2026, 10, 1)
    payment_method: str = "cheque"
    currency: str = "CAD"
    total_amount: Decimal = Decimal("1000.00")
    total_growers: int = 2


@dataclass
class FakeReport:
    id: str
    payment_distribution_id: str
    expected_amount: Decimal
    actual_amount: Decimal
    difference: Decimal
    expected_payments: int = 2
    actual_payments: int = 2
    missing_payments: int = 0
    duplicate_payments: int = 0
    status: str = "balanced"
    is_balanced: bool = True
    completion_percentage: float = 100.0
    generated_by: str = "SYSTEM"
    generated_at: datetime = datetime(2026, 10, 19, 9, 30)
    exceptions: list = field(default_factory=list)


@dataclass
class FakeAdvance:
    current_advance_amount: Decimal


class InMemoryDistributionSource:
    def __init__(self, distributions):
        self.distributions = list(distributions)
        self.fail = False
        self.calls = 0

    async def get_all_distributions(self):
        self.calls += 1
        if self.fail:
            raise DataAccessError("Distribution store offline")
        return list(self.distributions)


class StubReconciliationComputer:
    """Deterministic reconciliation over InMemoryDistributionSource data."""

    def __init__(self, source: InMemoryDistributionSource):
        self.source = source
        self.reconcile_calls: list[str] = []
        self.completed: list[tuple[str, str]] = []
        self.reconcile_error: Exception | None = None
        self.complete_error: Exception | None = None
        self.complete_result = True
        self.actual_amounts: dict[str, Decimal] = {}
        self.resolved: list[tuple[str, str, str]] = []

    def _find(self, distribution_id: str) -> FakeDistribution:
        return next(d for d in self.source.distributions if d.id == distribution_id)

    async def reconcile(self, distribution_id: str) -> FakeReport:
        self.reconcile_calls.append(distribution_id)
        if self.reconcile_error is not None:
            raise self.reconcile_error
        dist = self._find(distribution_id)
        actual = self.actual_amounts.get(distribution_id, dist.total_amount)
        difference = dist.total_amount - actual
        return FakeReport(
            id=f"report-{distribution_id}",
            payment_distribution_id=distribution_id,
            expected_amount=dist.total_amount,
            actual_amount=actual,
            difference=difference,
            status="balanced" if not difference else "discrepancy",
            is_balanced=not difference,
        )

    async def mark_completed(self, distribution_id: str, actor_id: str) -> bool:
        if self.complete_error is not None:
            raise self.complete_error
        if not self.complete_result:
            return False
        self._find(distribution_id).status = "completed"
        self.completed.append((distribution_id, actor_id))
        return True

    async def validate_for_completion(self, distribution_id: str) -> list[str]:
        if distribution_id in self.reconcile_calls:
            return []
        return ["Distribution has not been reconciled"]

    async def get_exceptions(self, distribution_id=None, open_only=True):
        return []

    async def resolve_exception(self, exception_id, resolution, resolved_by) -> bool:
        if exception_id != "exc-1":
            return False
        self.resolved.append((exception_id, resolution, resolved_by))
        return True

    async def get_statistics(self):
        stats: dict[str, dict] = {}
        for d in self.source.distributions:
            entry = stats.setdefault(d.status, {"count": 0, "total_amount": Decimal("0.00")})
            entry["count"] += 1
            entry["total_amount"] += d.total_amount
        return stats


class InMemoryAdvanceSource:
    def __init__(self, advances_by_grower: dict[str, list]):
        self.advances_by_grower = advances_by_grower

    async def get_outstanding_advances(self, grower_id: str):
        return list(self.advances_by_grower.get(grower_id, []))


# ── Collaborator fixtures ────────────────────────────────────────

@pytest.fixture
def distributions() -> list[FakeDistribution]:
    return [
        FakeDistribution(id="dist-1", distribution_number="PD-2026-001"),
        FakeDistribution(id="dist-2", distribution_number="PD-2026-002", status="draft"),
        FakeDistribution(
            id="dist-3", distribution_number="PD-2026-003",
            total_amount=Decimal("2500.50"),
        ),
        FakeDistribution(id="dist-4", distribution_number="PD-2026-004", status="completed"),
    ]


@pytest.fixture
def distribution_source(distributions) -> InMemoryDistributionSource:
    return InMemoryDistributionSource(distributions)


@pytest.fixture
def reconciliation_computer(distribution_source) -> StubReconciliationComputer:
    return StubReconciliationComputer(distribution_source)


@pytest.fixture
def advance_source() -> InMemoryAdvanceSource:
    return InMemoryAdvanceSource({
        "grower-001": [
            FakeAdvance(Decimal("200.00")),
            FakeAdvance(Decimal("100.00")),
        ],
    })


# ── HTTP client ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(
    distribution_source,
    reconciliation_computer,
    advance_source,
) -> AsyncGenerator[AsyncClient, None]:
    """Test client with SQL collaborators replaced by in-memory ones."""
    app.dependency_overrides[get_distribution_source] = lambda: distribution_source
    app.dependency_overrides[get_reconciliation_computer] = lambda: reconciliation_computer
    app.dependency_overrides[get_advance_source] = lambda: advance_source

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── SQLite session for the SQL-backed services ──────────────────

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session

    await engine.dispose()


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP endpoint tests")
    config.addinivalue_line("markers", "db: Tests against an in-memory database")
