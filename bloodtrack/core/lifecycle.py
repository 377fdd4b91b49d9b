"""Lifecycle Rules — adjacency table, lab-result evaluation and expiry checks.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no clock reads
    - TRANSITIONS is the single source of truth for legal moves; anything absent is illegal
    - Terminal states have no outgoing edges; QUARANTINED is non-terminal
    - Release requires >= 1 screening result and every attached result PASSED
    - Quarantine requires >= 1 screening result FAILED or INDETERMINATE
    - Conflicting typing results warn, they never block

Design Decisions:
    - Violations raise typed errors from core/errors.py: the ledger never builds an
      event for a move that failed validation, so nothing is partially applied
    - evaluate_lab_results returns a verdict, not an event: the shell owns the append
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from bloodtrack.core.domain_types import (
    InventoryState, LabResultStatus, TransitionReason, WarningCode,
)
from bloodtrack.core.errors import IllegalTransitionError, UnitNotInTestingError
from bloodtrack.core.ledger_records import (
    DataQualityWarning, ScreeningResult, TypingResult, UnitSnapshot,
)


S = InventoryState

TRANSITIONS: dict[InventoryState, frozenset[InventoryState]] = {
    S.NEW: frozenset({S.TESTING, S.EXPIRED, S.DISCARDED}),
    S.TESTING: frozenset({S.RELEASED, S.QUARANTINED, S.EXPIRED, S.DISCARDED}),
    S.QUARANTINED: frozenset({S.EXPIRED, S.DISCARDED}),
    S.RELEASED: frozenset(),
    S.EXPIRED: frozenset(),
    S.DISCARDED: frozenset(),
}

TERMINAL_STATES: frozenset[InventoryState] = frozenset(
    {S.RELEASED, S.EXPIRED, S.DISCARDED},
)

BLOCKING_SCREENING: frozenset[LabResultStatus] = frozenset(
    {LabResultStatus.FAILED, LabResultStatus.INDETERMINATE},
)


def is_terminal(state: InventoryState) -> bool:
    return state in TERMINAL_STATES


def can_transition(from_status: InventoryState, to_status: InventoryState) -> bool:
    return to_status in TRANSITIONS.get(from_status, frozenset())


def ensure_transition(
    from_status: InventoryState, to_status: InventoryState, detail: str | None = None,
) -> None:
    """Raise IllegalTransitionError unless the move is in the adjacency table."""
    if not can_transition(from_status, to_status):
        raise IllegalTransitionError(from_status.value, to_status.value, detail)


def ensure_testing(snapshot: UnitSnapshot) -> None:
    """Lab results and evaluation are only accepted while the unit is TESTING."""
    if snapshot.status != S.TESTING:
        raise UnitNotInTestingError(str(snapshot.unit.unit_id), snapshot.status.value)


# --- Lab evaluation -----------------------------------------------------------

@dataclass(frozen=True)
class LabVerdict:
    """Target of an evaluation. to_status None means: stay in TESTING."""
    to_status: InventoryState | None
    reason: TransitionReason | None
    warnings: tuple[DataQualityWarning, ...] = ()


def evaluate_lab_results(
    typing_results: Iterable[TypingResult],
    screening_results: Iterable[ScreeningResult],
) -> LabVerdict:
    """Decide the post-lab state of a TESTING unit.

    Order matters: a failed or indeterminate screen quarantines the unit even
    when other results are still pending.
    """
    typing_results = tuple(typing_results)
    screening_results = tuple(screening_results)
    warnings = find_typing_conflicts(typing_results)

    if any(r.status in BLOCKING_SCREENING for r in screening_results):
        return LabVerdict(S.QUARANTINED, TransitionReason.LAB_FAILED, warnings)

    all_passed = all(
        r.status == LabResultStatus.PASSED
        for r in (*typing_results, *screening_results)
    )
    if screening_results and all_passed:
        return LabVerdict(S.RELEASED, TransitionReason.LAB_PASSED, warnings)

    return LabVerdict(None, None, warnings)


def find_typing_conflicts(
    typing_results: Iterable[TypingResult],
) -> tuple[DataQualityWarning, ...]:
    """Flag PASSED typing results that disagree on blood type."""
    reported = {}
    for r in typing_results:
        if r.status == LabResultStatus.PASSED:
            reported.setdefault(r.blood_type, []).append(r.method.value)
    if len(reported) < 2:
        return ()
    detail = ", ".join(
        f"{blood_type.value} ({'/'.join(methods)})"
        for blood_type, methods in sorted(reported.items(), key=lambda kv: kv[0].value)
    )
    return (
        DataQualityWarning(
            WarningCode.TYPING_CONFLICT,
            f"Typing results disagree: {detail}",
        ),
    )


# --- Expiry -------------------------------------------------------------------

def is_expiry_due(snapshot: UnitSnapshot, now: datetime) -> bool:
    return now > snapshot.unit.expiration_time


def ensure_expirable(snapshot: UnitSnapshot, now: datetime) -> None:
    """Expiry needs a non-terminal unit whose expiration timestamp has passed."""
    ensure_transition(snapshot.status, S.EXPIRED)
    if not is_expiry_due(snapshot, now):
        raise IllegalTransitionError(
            snapshot.status.value, S.EXPIRED.value,
            f"expires at {snapshot.unit.expiration_time.isoformat()}",
        )
