"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Every mutation is conditional on the revision the caller read
    - A failed conditional write changes nothing and raises ConcurrentModificationError
    - Events are append-only: no update or delete method exists

Design Decisions:
    - Protocol over ABC: structural subtyping, InMemoryUnitStore and SqlUnitStore
      share no base class
    - Async in Protocol: implementations do IO, the lifecycle rules that consume
      the snapshots stay synchronous
"""

from datetime import datetime
from typing import Protocol

from bloodtrack.core.domain_types import DonationId, UnitId
from bloodtrack.core.ledger_records import (
    BloodUnit, InventoryEvent, ScreeningResult, TypingResult, UnitSnapshot,
)


class UnitStore(Protocol):
    """Durable append-only storage keyed by unit id — implemented by shell."""

    async def donation_exists(self, donation_id: DonationId) -> bool: ...

    async def create_unit(
        self, unit: BloodUnit, registration_event: InventoryEvent,
    ) -> None: ...

    async def load_snapshot(self, unit_id: UnitId) -> UnitSnapshot | None: ...

    async def append_event(
        self, event: InventoryEvent, expected_revision: int,
    ) -> None: ...

    async def attach_typing_result(
        self, result: TypingResult, expected_revision: int,
    ) -> None: ...

    async def attach_screening_result(
        self, result: ScreeningResult, expected_revision: int,
    ) -> None: ...

    async def list_events(self, unit_id: UnitId) -> list[InventoryEvent]: ...

    async def list_units_due_for_expiry(self, now: datetime) -> list[UnitId]: ...
