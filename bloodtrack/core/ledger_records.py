"""Ledger Records — immutable value objects for units, lab findings and inventory events.

Invariants:
    - All records are frozen: lab results and events are facts, never edited
    - InventoryEvent.sequence starts at 1 (registration) and increases by one per append
    - UnitSnapshot.status is ALWAYS latest_event.to_status (no independent status field)
    - Timestamps are timezone-aware UTC

Design Decisions:
    - Frozen dataclasses over Pydantic models: core stays dependency-free and hashable
    - Snapshot bundles unit + latest event + revision + results: one consistent read
      is all a lifecycle decision needs
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

from bloodtrack.core.domain_types import (
    ActorId, BloodType, ComponentType, DonationId, EventId, FacilityId,
    InventoryState, LabResultStatus, ResultId, TransitionReason, TypingMethod,
    UnitId, WarningCode,
)


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Provenance:
    """Who and where a finding came from."""
    facility_id: FacilityId | None = None
    staff_id: ActorId | None = None
    recorded_at: datetime | None = None


@dataclass(frozen=True)
class BloodUnit:
    """Static attributes of a blood unit. Status lives in the event log."""
    unit_id: UnitId
    donation_id: DonationId
    component: ComponentType
    unit_code: str
    expiration_time: datetime
    created_at: datetime


@dataclass(frozen=True)
class TypingResult:
    """ABO/Rh determination attached to a unit."""
    result_id: ResultId
    unit_id: UnitId
    blood_type: BloodType
    method: TypingMethod
    status: LabResultStatus
    provenance: Provenance = field(default_factory=Provenance)
    notes: str | None = None


@dataclass(frozen=True)
class ScreeningResult:
    """Infectious-disease screen keyed by test code."""
    result_id: ResultId
    unit_id: UnitId
    test_code: str
    status: LabResultStatus
    value: str | None = None
    provenance: Provenance = field(default_factory=Provenance)
    notes: str | None = None


@dataclass(frozen=True)
class InventoryEvent:
    """One appended status transition."""
    event_id: EventId
    unit_id: UnitId
    sequence: int
    from_status: InventoryState | None
    to_status: InventoryState
    reason: TransitionReason
    actor_id: ActorId | None
    occurred_at: datetime
    note: str | None = None

    def to_message(self) -> dict:
        """Payload for an external event stream (publishing is the caller's job)."""
        return {
            "unitId": str(self.unit_id),
            "fromStatus": self.from_status.value if self.from_status else None,
            "toStatus": self.to_status.value,
            "reason": self.reason.value,
            "actorId": str(self.actor_id) if self.actor_id else None,
            "timestamp": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class UnitSnapshot:
    """Consistent read of one unit used for a single decision."""
    unit: BloodUnit
    latest_event: InventoryEvent
    revision: int
    typing_results: tuple[TypingResult, ...] = ()
    screening_results: tuple[ScreeningResult, ...] = ()

    @property
    def status(self) -> InventoryState:
        return self.latest_event.to_status


@dataclass(frozen=True)
class DataQualityWarning:
    code: WarningCode
    message: str


@dataclass(frozen=True)
class EvaluationOutcome:
    """Result of evaluate_and_transition: the appended event (if any) plus warnings."""
    event: InventoryEvent | None
    warnings: tuple[DataQualityWarning, ...] = ()

    @property
    def transitioned(self) -> bool:
        return self.event is not None


def new_event(
    snapshot_or_unit_id: UnitSnapshot | UnitId,
    to_status: InventoryState,
    reason: TransitionReason,
    occurred_at: datetime,
    actor_id: ActorId | None = None,
    note: str | None = None,
) -> InventoryEvent:
    """Build the next event for a unit. A bare UnitId builds the registration event."""
    if isinstance(snapshot_or_unit_id, UnitSnapshot):
        latest = snapshot_or_unit_id.latest_event
        # History must never run backwards, even if the wall clock does
        occurred_at = max(occurred_at, latest.occurred_at)
        return InventoryEvent(
            event_id=EventId(uuid4()),
            unit_id=latest.unit_id,
            sequence=latest.sequence + 1,
            from_status=latest.to_status,
            to_status=to_status,
            reason=reason,
            actor_id=actor_id,
            occurred_at=occurred_at,
            note=note,
        )
    return InventoryEvent(
        event_id=EventId(uuid4()),
        unit_id=snapshot_or_unit_id,
        sequence=1,
        from_status=None,
        to_status=to_status,
        reason=reason,
        actor_id=actor_id,
        occurred_at=occurred_at,
        note=note,
    )
