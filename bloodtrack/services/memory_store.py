"""In-Memory Unit Store — process-local UnitStore for tests and embedded use.

Invariants:
    - Each unit record carries a revision bumped by every mutation
    - Conditional writes compare against the revision before touching anything
    - Snapshots and histories are returned as tuples (callers cannot mutate the log)

Design Decisions:
    - Plain dicts, no locks: every method runs without awaiting between its check
      and its write, so on one event loop the compare-and-append is atomic
      (ADR: single-process embedding; durable deployments use SqlUnitStore)
"""

from dataclasses import dataclass, field
from datetime import datetime

from bloodtrack.core.domain_types import DonationId, UnitId
from bloodtrack.core.errors import (
    ConcurrentModificationError, DuplicateLabResultError, UnitNotFoundError,
)
from bloodtrack.core.ledger_records import (
    BloodUnit, InventoryEvent, ScreeningResult, TypingResult, UnitSnapshot,
)
from bloodtrack.core.lifecycle import is_terminal


@dataclass
class _UnitRecord:
    unit: BloodUnit
    events: list[InventoryEvent]
    revision: int = 1
    typing_results: list[TypingResult] = field(default_factory=list)
    screening_results: list[ScreeningResult] = field(default_factory=list)


class InMemoryUnitStore:
    """UnitStore backed by dicts."""

    def __init__(self, donation_ids: set[DonationId] | None = None):
        self._donations: set[DonationId] = set(donation_ids or ())
        self._units: dict[UnitId, _UnitRecord] = {}

    def _record(self, unit_id: UnitId) -> _UnitRecord:
        record = self._units.get(unit_id)
        if record is None:
            raise UnitNotFoundError(str(unit_id))
        return record

    def _claim(self, unit_id: UnitId, expected_revision: int) -> _UnitRecord:
        record = self._record(unit_id)
        if record.revision != expected_revision:
            raise ConcurrentModificationError(str(unit_id), expected_revision)
        return record

    async def donation_exists(self, donation_id: DonationId) -> bool:
        return donation_id in self._donations

    async def create_unit(
        self, unit: BloodUnit, registration_event: InventoryEvent,
    ) -> None:
        if unit.unit_id in self._units:
            raise ConcurrentModificationError(str(unit.unit_id), 0)
        self._units[unit.unit_id] = _UnitRecord(unit, [registration_event])

    async def load_snapshot(self, unit_id: UnitId) -> UnitSnapshot | None:
        record = self._units.get(unit_id)
        if record is None or not record.events:
            return None
        return UnitSnapshot(
            unit=record.unit,
            latest_event=record.events[-1],
            revision=record.revision,
            typing_results=tuple(record.typing_results),
            screening_results=tuple(record.screening_results),
        )

    async def append_event(self, event: InventoryEvent, expected_revision: int) -> None:
        record = self._claim(event.unit_id, expected_revision)
        record.events.append(event)
        record.revision += 1

    async def attach_typing_result(
        self, result: TypingResult, expected_revision: int,
    ) -> None:
        record = self._claim(result.unit_id, expected_revision)
        record.typing_results.append(result)
        record.revision += 1

    async def attach_screening_result(
        self, result: ScreeningResult, expected_revision: int,
    ) -> None:
        record = self._claim(result.unit_id, expected_revision)
        if any(r.test_code == result.test_code for r in record.screening_results):
            raise DuplicateLabResultError(str(result.unit_id), result.test_code)
        record.screening_results.append(result)
        record.revision += 1

    async def list_events(self, unit_id: UnitId) -> list[InventoryEvent]:
        record = self._units.get(unit_id)
        return list(record.events) if record else []

    async def list_units_due_for_expiry(self, now: datetime) -> list[UnitId]:
        return [
            unit_id for unit_id, record in self._units.items()
            if not is_terminal(record.events[-1].to_status)
            and now > record.unit.expiration_time
        ]
