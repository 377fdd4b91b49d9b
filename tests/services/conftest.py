"""Service test fixtures — pinned clock, in-memory ledger, async SQLite ledger.

Invariants:
    - Every test gets a fresh in-memory store or a fresh in-memory SQLite database
    - The clock is pinned; tests move it explicitly with clock.advance()
    - SQL fixtures seed one donor, one lab facility and one donation
    - SQLite enforces foreign keys, as PostgreSQL does

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for the conditional
      UPDATE + unique-constraint append path
    - Seeding uses its own short-lived session so no transaction stays open on the
      shared connection while the store runs
"""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)

from bloodtrack.core.domain_types import DonationId, FacilityId
from bloodtrack.db.base import Base
from bloodtrack.infrastructure.database import DatabaseSessionManager
import bloodtrack.models  # noqa: F401
from bloodtrack.models.donation import Donation
from bloodtrack.models.facility import Facility
from bloodtrack.models.person import Person
from bloodtrack.services.memory_store import InMemoryUnitStore
from bloodtrack.services.sql_store import SqlUnitStore
from bloodtrack.services.unit_ledger import UnitLedger


class FakeClock:
    """Callable clock the tests can move forwards and backwards."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 10, 19, 9, 0, tzinfo=timezone.utc))


# ─── In-memory ledger ───────────────────────────────────────────

@pytest.fixture
def donation_id():
    return DonationId(uuid4())


@pytest.fixture
def memory_store(donation_id):
    return InMemoryUnitStore({donation_id})


@pytest.fixture
def ledger(memory_store, clock):
    return UnitLedger(memory_store, clock=clock)


# ─── SQL ledger ─────────────────────────────────────────────────

@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enforce_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def lab_facility_id(test_session_factory):
    facility = Facility(
        facility_code="LAB-001", name="Central Serology Lab", type="LAB",
        city="Miramar",
    )
    async with test_session_factory() as db:
        db.add(facility)
        await db.commit()
    return FacilityId(facility.id)


@pytest.fixture
async def seeded_donation_id(test_session_factory, clock):
    donor = Person(
        first_name="Sam", last_name="Taylor", date_of_birth=date(1992, 1, 15),
        email="sam.taylor@example.com",
    )
    async with test_session_factory() as db:
        db.add(donor)
        await db.flush()
        donation = Donation(
            donor_id=donor.id,
            collection_time=clock.now - timedelta(days=1),
            site_code="MIR-01",
            notes="Whole blood",
        )
        db.add(donation)
        await db.commit()
    return DonationId(donation.id)


@pytest.fixture
async def test_db(test_engine):
    return DatabaseSessionManager(test_engine)


@pytest.fixture
def sql_store(test_db):
    return SqlUnitStore(test_db)


@pytest.fixture
def sql_ledger(sql_store, clock):
    return UnitLedger(sql_store, clock=clock)
