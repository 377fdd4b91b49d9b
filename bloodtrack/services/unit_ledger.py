"""Unit Ledger — async orchestration of the blood-unit lifecycle over a UnitStore.

Invariants:
    - Every operation follows read snapshot -> pure decision (core/lifecycle) -> conditional write
    - Status is only ever changed by appending an event; current_status reads the latest event
    - A rejected operation leaves the store untouched (nothing partially applied)
    - Lab results are recorded only while TESTING and never transition the unit by themselves
    - expire() on an already EXPIRED unit returns the existing terminal event

Design Decisions:
    - Clock injected: expiry compares stored timestamps with wall-clock time at call time,
      tests pin the clock instead of sleeping
    - ConcurrentModificationError is NOT retried here: the caller re-reads and decides
    - expire_due_units is a convenience for an external scheduler, not a background timer
"""

import logging
from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

from bloodtrack.core.domain_types import (
    ActorId, BloodType, ComponentType, DonationId, InventoryState,
    LabResultStatus, ResultId, TransitionReason, TypingMethod, UnitId,
)
from bloodtrack.core.errors import (
    BloodTrackError, ConcurrentModificationError, DuplicateLabResultError,
    IllegalTransitionError, InvalidDonationReferenceError, UnitNotFoundError,
)
from bloodtrack.core.ledger_records import (
    BloodUnit, EvaluationOutcome, InventoryEvent, Provenance, ScreeningResult,
    TypingResult, UnitSnapshot, as_utc, new_event,
)
from bloodtrack.core.lifecycle import (
    ensure_expirable, ensure_testing, ensure_transition, evaluate_lab_results,
)
from bloodtrack.core.repository_protocols import UnitStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UnitLedger:
    """Enforces legal transitions and keeps the append-only history per unit."""

    def __init__(
        self, store: UnitStore, clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self._clock = clock

    def _now(self) -> datetime:
        return as_utc(self._clock())

    async def _snapshot(self, unit_id: UnitId) -> UnitSnapshot:
        snapshot = await self.store.load_snapshot(unit_id)
        if snapshot is None:
            raise UnitNotFoundError(str(unit_id))
        return snapshot

    async def _append(self, snapshot: UnitSnapshot, event: InventoryEvent) -> InventoryEvent:
        try:
            await self.store.append_event(event, snapshot.revision)
        except BloodTrackError as e:
            logger.warning(
                f"Append rejected for unit {event.unit_id}: {e.message}",
                extra={
                    "unit_id": str(event.unit_id), "error_code": e.code,
                    "revision": snapshot.revision,
                },
            )
            raise
        logger.info(
            f"Unit {event.unit_id}: {snapshot.status.value} -> {event.to_status.value}",
            extra={
                "unit_id": str(event.unit_id),
                "from_status": snapshot.status.value,
                "to_status": event.to_status.value,
                "reason": event.reason.value,
                "revision": snapshot.revision + 1,
            },
        )
        return event

    # ─── Registration ────────────────────────────────────────────

    async def register_unit(
        self,
        donation_id: DonationId,
        component: ComponentType,
        expiration_time: datetime,
        unit_code: str | None = None,
        actor_id: ActorId | None = None,
    ) -> UnitId:
        """Create a unit in NEW. The donation must already exist."""
        if not await self.store.donation_exists(donation_id):
            raise InvalidDonationReferenceError(str(donation_id))

        now = self._now()
        unit_id = UnitId(uuid4())
        unit = BloodUnit(
            unit_id=unit_id,
            donation_id=donation_id,
            component=ComponentType(component),
            unit_code=unit_code or f"UNIT-{unit_id.hex[:10].upper()}",
            expiration_time=as_utc(expiration_time),
            created_at=now,
        )
        event = new_event(
            unit_id, InventoryState.NEW, TransitionReason.REGISTERED, now, actor_id,
        )
        await self.store.create_unit(unit, event)
        logger.info(
            f"Registered unit {unit.unit_code} ({unit.component.value})",
            extra={"unit_id": str(unit_id), "to_status": InventoryState.NEW.value},
        )
        return unit_id

    # ─── Transitions ─────────────────────────────────────────────

    async def begin_testing(self, unit_id: UnitId, actor_id: ActorId | None) -> InventoryEvent:
        snapshot = await self._snapshot(unit_id)
        ensure_transition(snapshot.status, InventoryState.TESTING)
        event = new_event(
            snapshot, InventoryState.TESTING, TransitionReason.LAB_STARTED,
            self._now(), actor_id,
        )
        return await self._append(snapshot, event)

    async def evaluate_and_transition(
        self, unit_id: UnitId, actor_id: ActorId | None,
    ) -> EvaluationOutcome:
        """Quarantine on a failed screen, release when everything passed, else stay."""
        snapshot = await self._snapshot(unit_id)
        ensure_testing(snapshot)
        verdict = evaluate_lab_results(
            snapshot.typing_results, snapshot.screening_results,
        )
        for warning in verdict.warnings:
            logger.warning(
                warning.message,
                extra={"unit_id": str(unit_id), "error_code": warning.code.value},
            )
        if verdict.to_status is None:
            return EvaluationOutcome(None, verdict.warnings)

        ensure_transition(snapshot.status, verdict.to_status)
        event = new_event(
            snapshot, verdict.to_status, verdict.reason, self._now(), actor_id,
        )
        return EvaluationOutcome(await self._append(snapshot, event), verdict.warnings)

    async def expire(self, unit_id: UnitId) -> InventoryEvent:
        """System-triggered expiry. Idempotent on units that are already EXPIRED."""
        snapshot = await self._snapshot(unit_id)
        if snapshot.status == InventoryState.EXPIRED:
            return snapshot.latest_event
        now = self._now()
        ensure_expirable(snapshot, now)
        event = new_event(snapshot, InventoryState.EXPIRED, TransitionReason.EXPIRED, now)
        return await self._append(snapshot, event)

    async def discard(
        self, unit_id: UnitId, actor_id: ActorId | None, reason: str | None = None,
    ) -> InventoryEvent:
        """Manual terminal transition. The free-text reason is kept as the event note."""
        snapshot = await self._snapshot(unit_id)
        ensure_transition(snapshot.status, InventoryState.DISCARDED)
        event = new_event(
            snapshot, InventoryState.DISCARDED, TransitionReason.DISCARDED,
            self._now(), actor_id, note=reason,
        )
        return await self._append(snapshot, event)

    async def expire_due_units(self) -> list[InventoryEvent]:
        """Expire every non-terminal unit past its expiration at call time.

        Units moved by a concurrent writer between listing and expiring are
        skipped; the next sweep picks them up if still due. Store failures
        (DatabaseError) propagate.
        """
        now = self._now()
        expired = []
        for unit_id in await self.store.list_units_due_for_expiry(now):
            try:
                expired.append(await self.expire(unit_id))
            except (ConcurrentModificationError, IllegalTransitionError) as e:
                logger.warning(
                    f"Skipped expiry of unit {unit_id}: {e.message}",
                    extra={"unit_id": str(unit_id), "error_code": e.code},
                )
        return expired

    # ─── Lab results ─────────────────────────────────────────────

    async def record_typing_result(
        self,
        unit_id: UnitId,
        blood_type: BloodType,
        method: TypingMethod,
        status: LabResultStatus,
        provenance: Provenance | None = None,
        notes: str | None = None,
    ) -> TypingResult:
        snapshot = await self._snapshot(unit_id)
        ensure_testing(snapshot)
        result = TypingResult(
            result_id=ResultId(uuid4()),
            unit_id=unit_id,
            blood_type=BloodType(blood_type),
            method=TypingMethod(method),
            status=LabResultStatus(status),
            provenance=self._stamp(provenance),
            notes=notes,
        )
        await self.store.attach_typing_result(result, snapshot.revision)
        return result

    async def record_screening_result(
        self,
        unit_id: UnitId,
        test_code: str,
        status: LabResultStatus,
        value: str | None = None,
        provenance: Provenance | None = None,
        notes: str | None = None,
    ) -> ScreeningResult:
        snapshot = await self._snapshot(unit_id)
        ensure_testing(snapshot)
        if any(r.test_code == test_code for r in snapshot.screening_results):
            raise DuplicateLabResultError(str(unit_id), test_code)
        result = ScreeningResult(
            result_id=ResultId(uuid4()),
            unit_id=unit_id,
            test_code=test_code,
            status=LabResultStatus(status),
            value=value,
            provenance=self._stamp(provenance),
            notes=notes,
        )
        await self.store.attach_screening_result(result, snapshot.revision)
        return result

    def _stamp(self, provenance: Provenance | None) -> Provenance:
        provenance = provenance or Provenance()
        recorded_at = provenance.recorded_at
        return Provenance(
            facility_id=provenance.facility_id,
            staff_id=provenance.staff_id,
            recorded_at=as_utc(recorded_at) if recorded_at else self._now(),
        )

    # ─── Reads ───────────────────────────────────────────────────

    async def current_status(self, unit_id: UnitId) -> InventoryState:
        return (await self._snapshot(unit_id)).status

    async def get_unit(self, unit_id: UnitId) -> BloodUnit:
        return (await self._snapshot(unit_id)).unit

    async def history(self, unit_id: UnitId) -> tuple[InventoryEvent, ...]:
        """Full audit trail, oldest first."""
        events = await self.store.list_events(unit_id)
        if not events:
            raise UnitNotFoundError(str(unit_id))
        return tuple(events)
