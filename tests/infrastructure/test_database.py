"""Database Session Manager — integrity errors mapped at the session boundary.

Tests:
    - a matching IntegrityRule raises its domain error and rolls back
    - an unmatched constraint violation raises DatabaseError
    - a domain error raised inside the session rolls back and passes through
    - health_check reports a reachable database
"""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine

from bloodtrack.core.errors import (
    DatabaseError, DuplicateLabResultError, ErrorSeverity, UnitNotFoundError,
)
from bloodtrack.db.base import Base
import bloodtrack.models  # noqa: F401
from bloodtrack.infrastructure.database import (
    DatabaseSessionManager, IntegrityRule,
)
from bloodtrack.models.facility import Facility

FACILITY_CODE_RULE = IntegrityRule(
    ("facilities.facility_code",),
    lambda: DuplicateLabResultError("u1", "LAB-001"),
)


@pytest.fixture
async def manager():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    manager = DatabaseSessionManager(engine)
    yield manager
    await manager.dispose()


def _lab(name="Central Serology Lab") -> Facility:
    return Facility(facility_code="LAB-001", name=name, type="LAB")


async def _names(manager) -> list[str]:
    async with manager.session() as db:
        return list((await db.execute(select(Facility.name))).scalars().all())


async def test_matching_rule_raises_domain_error(manager):
    async with manager.session() as db:
        db.add(_lab())
        await db.commit()

    with pytest.raises(DuplicateLabResultError):
        async with manager.session([FACILITY_CODE_RULE]) as db:
            db.add(_lab("Second Lab"))
            await db.commit()

    assert await _names(manager) == ["Central Serology Lab"]


async def test_unmatched_violation_is_database_error(manager):
    async with manager.session() as db:
        db.add(_lab())
        await db.commit()

    with pytest.raises(DatabaseError) as exc:
        async with manager.session() as db:
            db.add(_lab("Second Lab"))
            await db.commit()

    assert exc.value.severity == ErrorSeverity.CRITICAL
    assert exc.value.http_status == 503


async def test_domain_error_rolls_back_and_passes_through(manager):
    with pytest.raises(UnitNotFoundError):
        async with manager.session() as db:
            db.add(_lab())
            await db.flush()
            raise UnitNotFoundError("u1")

    assert await _names(manager) == []


async def test_health_check(manager):
    assert await manager.health_check() is True
