"""Shared test fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections.abc import AsyncGenerator  # noqa: E402
from datetime import date, datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from recotool.core.database import get_db  # noqa: E402
from recotool.engine.lines import CountryAccounts, LineSnapshot, Referentials  # noqa: E402
from recotool.main import app  # noqa: E402
from recotool.models import (  # noqa: E402
    AccountingLine,
    Base,
    Country,
    DwingsGuarantee,
    DwingsInvoice,
    Reconciliation,
    UserField,
)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)

ACTION_NA = 99
ACTION_INVESTIGATE = 7
ACTION_DEFAULT = 1


@pytest.fixture
def referentials() -> Referentials:
    return Referentials(
        countries={
            "FR": CountryAccounts("FR", pivot_account_id="PIV-FR", receivable_account_id="REC-FR"),
            "DE": CountryAccounts("DE", pivot_account_id="PIV-DE", receivable_account_id="REC-DE"),
        },
        actions={ACTION_DEFAULT: "Default", ACTION_INVESTIGATE: "Investigate", ACTION_NA: "N/A"},
        kpis={16: "Paid but not reconciled", 18: "Under investigation"},
        incident_types={3: "Late payment"},
        na_action_ids=frozenset({ACTION_NA}),
    )


def make_line(line_id: str = "L1", **fields) -> LineSnapshot:
    """Pivot-side FR credit line with no DWINGS link unless overridden."""
    defaults = {
        "account_id": "PIV-FR",
        "country_id": "FR",
        "signed_amount": Decimal("100.00"),
        "currency": "EUR",
        "operation_date": date(2026, 3, 1),
        "raw_label": "COLLECTION 12345",
    }
    defaults.update(fields)
    return LineSnapshot(line_id=line_id, **defaults)


# ── Database ──────────────────────────────────────


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_db(db: AsyncSession) -> AsyncSession:
    """Countries, catalogs, DWINGS records and a small set of FR lines."""
    db.add_all([
        Country(id="FR", name="France", pivot_account_id="PIV-FR", receivable_account_id="REC-FR"),
        UserField(id=ACTION_DEFAULT, category=UserField.ACTION, name="Default"),
        UserField(id=ACTION_INVESTIGATE, category=UserField.ACTION, name="Investigate"),
        UserField(id=ACTION_NA, category=UserField.ACTION, name="N/A"),
        UserField(id=16, category=UserField.KPI, name="Paid but not reconciled"),
        DwingsGuarantee(id="G-1", guarantee_type="ISSUANCE"),
        DwingsInvoice(id="INV-1", mt_status="ACKED", comm_id_email=True, invoice_status="INITIATED"),
        # P1 / R1 share invoice INV-1 and cancel out; P2 has no link; P3 is archived.
        AccountingLine(id="P1", country_id="FR", account_id="PIV-FR", signed_amount=Decimal("250.00"),
                       operation_date=date(2026, 3, 1), raw_label="COLLECTION BGI", category="COLLECTION"),
        AccountingLine(id="R1", country_id="FR", account_id="REC-FR", signed_amount=Decimal("-250.00"),
                       operation_date=date(2026, 3, 2), raw_label="INCOMING"),
        AccountingLine(id="P2", country_id="FR", account_id="PIV-FR", signed_amount=Decimal("-40.00"),
                       operation_date=date(2026, 2, 20), raw_label="PAYMENT OUT", category="PAYMENT"),
        AccountingLine(id="P3", country_id="FR", account_id="PIV-FR", signed_amount=Decimal("10.00"),
                       raw_label="OLD", deleted_at=NOW),
    ])
    await db.flush()
    db.add_all([
        Reconciliation(id="P1", dwings_invoice_id="INV-1", kpi_id=18, to_remind=False),
        Reconciliation(id="R1", dwings_invoice_id="INV-1", dwings_guarantee_id="G-1", to_remind=False),
    ])
    await db.commit()
    return db


# ── HTTP ──────────────────────────────────────────


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async test client bound to the in-memory database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db
        await db.commit()

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
