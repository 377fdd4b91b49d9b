"""SQL Unit Store — durable UnitStore on the DatabaseSessionManager.

Invariants:
    - Every mutation runs in its own transaction: conditional revision bump + insert, then commit
    - A revision mismatch (rowcount 0) raises ConcurrentModificationError; the session rolls back
    - The unique (blood_unit_id, sequence) constraint backs the revision check
    - blood_units.inventory_status is only written together with an event insert
    - Timestamps read back from the DB are normalized to aware UTC

Design Decisions:
    - Constraint violations are not caught here: each write hands the session manager
      the IntegrityRules it can trip, and the manager raises the domain error
    - Mapping between ORM rows and core records lives here so core never sees ORM types
"""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bloodtrack.core.domain_types import (
    ActorId, BloodType, ComponentType, DonationId, EventId, FacilityId,
    InventoryState, LabResultStatus, ResultId, TransitionReason, TypingMethod,
    UnitId,
)
from bloodtrack.core.errors import (
    ConcurrentModificationError, DuplicateLabResultError,
    InvalidDonationReferenceError,
)
from bloodtrack.core.ledger_records import (
    BloodUnit, InventoryEvent, Provenance, ScreeningResult, TypingResult,
    UnitSnapshot, as_utc,
)
from bloodtrack.core.lifecycle import TERMINAL_STATES
from bloodtrack.infrastructure.database import (
    SQLITE_FOREIGN_KEY, DatabaseSessionManager, IntegrityRule,
)
from bloodtrack.models.blood_unit import BloodUnit as BloodUnitModel
from bloodtrack.models.donation import Donation as DonationModel
from bloodtrack.models.inventory_event import InventoryEvent as InventoryEventModel
from bloodtrack.models.lab_result import (
    ScreeningResult as ScreeningResultModel,
    TypingResult as TypingResultModel,
)

# PostgreSQL reports the constraint name, SQLite the column list
EVENT_SEQUENCE_MARKERS = (
    "uq_inventory_event_sequence",
    "inventory_events.blood_unit_id, inventory_events.sequence",
)
SCREENING_CODE_MARKERS = (
    "uq_screening_unit_test",
    "unit_screening_results.blood_unit_id, unit_screening_results.test_code",
)
# The donation is the only FK create_unit can violate, so SQLite's generic text is enough
DONATION_FK_MARKERS = ("fk_blood_units_donation", SQLITE_FOREIGN_KEY)


class SqlUnitStore:
    """UnitStore backed by the blood_units / inventory_events tables."""

    def __init__(self, db: DatabaseSessionManager):
        self._db = db

    async def donation_exists(self, donation_id: DonationId) -> bool:
        async with self._db.session() as db:
            result = await db.execute(
                select(DonationModel.id).where(DonationModel.id == donation_id),
            )
            return result.scalar_one_or_none() is not None

    async def create_unit(
        self, unit: BloodUnit, registration_event: InventoryEvent,
    ) -> None:
        rules = (IntegrityRule(
            DONATION_FK_MARKERS,
            lambda: InvalidDonationReferenceError(str(unit.donation_id)),
        ),)
        async with self._db.session(rules) as db:
            db.add(BloodUnitModel(
                id=unit.unit_id,
                donation_id=unit.donation_id,
                component=unit.component.value,
                unit_code=unit.unit_code,
                expiration_time=unit.expiration_time,
                inventory_status=registration_event.to_status.value,
                revision=1,
                created_at=unit.created_at,
                updated_at=unit.created_at,
            ))
            # Unit row must exist before the event that references it
            await db.flush()
            db.add(_event_row(registration_event))
            await db.commit()

    async def load_snapshot(self, unit_id: UnitId) -> UnitSnapshot | None:
        async with self._db.session() as db:
            unit_row = (await db.execute(
                select(BloodUnitModel).where(BloodUnitModel.id == unit_id),
            )).scalar_one_or_none()
            if unit_row is None:
                return None
            latest = (await db.execute(
                select(InventoryEventModel)
                .where(InventoryEventModel.blood_unit_id == unit_id)
                .order_by(InventoryEventModel.sequence.desc())
                .limit(1)
            )).scalar_one_or_none()
            if latest is None:
                return None
            typing_rows = (await db.execute(
                select(TypingResultModel)
                .where(TypingResultModel.blood_unit_id == unit_id)
                .order_by(TypingResultModel.tested_at)
            )).scalars().all()
            screening_rows = (await db.execute(
                select(ScreeningResultModel)
                .where(ScreeningResultModel.blood_unit_id == unit_id)
                .order_by(ScreeningResultModel.tested_at)
            )).scalars().all()
            return UnitSnapshot(
                unit=_unit_record(unit_row),
                latest_event=_event_record(latest),
                revision=unit_row.revision,
                typing_results=tuple(_typing_record(r) for r in typing_rows),
                screening_results=tuple(_screening_record(r) for r in screening_rows),
            )

    async def _claim_revision(
        self,
        db: AsyncSession,
        unit_id: UnitId,
        expected_revision: int,
        touched_at: datetime,
        status: InventoryState | None = None,
    ) -> None:
        """Compare-and-bump the unit revision inside the caller's transaction."""
        values = {"revision": expected_revision + 1, "updated_at": touched_at}
        if status is not None:
            values["inventory_status"] = status.value
        result = await db.execute(
            update(BloodUnitModel)
            .where(BloodUnitModel.id == unit_id)
            .where(BloodUnitModel.revision == expected_revision)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentModificationError(str(unit_id), expected_revision)

    async def append_event(self, event: InventoryEvent, expected_revision: int) -> None:
        rules = (IntegrityRule(
            EVENT_SEQUENCE_MARKERS,
            lambda: ConcurrentModificationError(str(event.unit_id), expected_revision),
        ),)
        async with self._db.session(rules) as db:
            await self._claim_revision(
                db, event.unit_id, expected_revision, event.occurred_at, event.to_status,
            )
            db.add(_event_row(event))
            await db.commit()

    async def attach_typing_result(
        self, result: TypingResult, expected_revision: int,
    ) -> None:
        async with self._db.session() as db:
            await self._claim_revision(
                db, result.unit_id, expected_revision, result.provenance.recorded_at,
            )
            db.add(TypingResultModel(
                id=result.result_id,
                blood_unit_id=result.unit_id,
                blood_type=result.blood_type.value,
                method=result.method.value,
                status=result.status.value,
                tested_at=result.provenance.recorded_at,
                lab_facility_id=result.provenance.facility_id,
                tested_by_staff_id=result.provenance.staff_id,
                notes=result.notes,
            ))
            await db.commit()

    async def attach_screening_result(
        self, result: ScreeningResult, expected_revision: int,
    ) -> None:
        rules = (IntegrityRule(
            SCREENING_CODE_MARKERS,
            lambda: DuplicateLabResultError(str(result.unit_id), result.test_code),
        ),)
        async with self._db.session(rules) as db:
            await self._claim_revision(
                db, result.unit_id, expected_revision, result.provenance.recorded_at,
            )
            db.add(ScreeningResultModel(
                id=result.result_id,
                blood_unit_id=result.unit_id,
                test_code=result.test_code,
                status=result.status.value,
                value=result.value,
                tested_at=result.provenance.recorded_at,
                lab_facility_id=result.provenance.facility_id,
                tested_by_staff_id=result.provenance.staff_id,
                notes=result.notes,
            ))
            await db.commit()

    async def list_events(self, unit_id: UnitId) -> list[InventoryEvent]:
        async with self._db.session() as db:
            rows = (await db.execute(
                select(InventoryEventModel)
                .where(InventoryEventModel.blood_unit_id == unit_id)
                .order_by(InventoryEventModel.sequence)
            )).scalars().all()
            return [_event_record(r) for r in rows]

    async def list_units_due_for_expiry(self, now: datetime) -> list[UnitId]:
        async with self._db.session() as db:
            rows = (await db.execute(
                select(BloodUnitModel.id)
                .where(BloodUnitModel.inventory_status.notin_(
                    [s.value for s in TERMINAL_STATES],
                ))
                .where(BloodUnitModel.expiration_time < now)
                .order_by(BloodUnitModel.expiration_time)
            )).scalars().all()
            return [UnitId(r) for r in rows]


# ─── Row <-> record mapping ─────────────────────────────────────

def _event_row(event: InventoryEvent) -> InventoryEventModel:
    return InventoryEventModel(
        id=event.event_id,
        blood_unit_id=event.unit_id,
        sequence=event.sequence,
        from_status=event.from_status.value if event.from_status else None,
        to_status=event.to_status.value,
        reason=event.reason.value,
        actor_staff_id=event.actor_id,
        note=event.note,
        created_at=event.occurred_at,
    )


def _event_record(row: InventoryEventModel) -> InventoryEvent:
    return InventoryEvent(
        event_id=EventId(row.id),
        unit_id=UnitId(row.blood_unit_id),
        sequence=row.sequence,
        from_status=InventoryState(row.from_status) if row.from_status else None,
        to_status=InventoryState(row.to_status),
        reason=TransitionReason(row.reason),
        actor_id=ActorId(row.actor_staff_id) if row.actor_staff_id else None,
        occurred_at=as_utc(row.created_at),
        note=row.note,
    )


def _unit_record(row: BloodUnitModel) -> BloodUnit:
    return BloodUnit(
        unit_id=UnitId(row.id),
        donation_id=DonationId(row.donation_id),
        component=ComponentType(row.component),
        unit_code=row.unit_code,
        expiration_time=as_utc(row.expiration_time),
        created_at=as_utc(row.created_at),
    )


def _provenance(row: TypingResultModel | ScreeningResultModel) -> Provenance:
    return Provenance(
        facility_id=FacilityId(row.lab_facility_id) if row.lab_facility_id else None,
        staff_id=ActorId(row.tested_by_staff_id) if row.tested_by_staff_id else None,
        recorded_at=as_utc(row.tested_at),
    )


def _typing_record(row: TypingResultModel) -> TypingResult:
    return TypingResult(
        result_id=ResultId(row.id),
        unit_id=UnitId(row.blood_unit_id),
        blood_type=BloodType(row.blood_type),
        method=TypingMethod(row.method),
        status=LabResultStatus(row.status),
        provenance=_provenance(row),
        notes=row.notes,
    )


def _screening_record(row: ScreeningResultModel) -> ScreeningResult:
    return ScreeningResult(
        result_id=ResultId(row.id),
        unit_id=UnitId(row.blood_unit_id),
        test_code=row.test_code,
        status=LabResultStatus(row.status),
        value=row.value,
        provenance=_provenance(row),
        notes=row.notes,
    )
