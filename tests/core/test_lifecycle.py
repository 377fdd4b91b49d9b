"""Lifecycle Rules — tests for the pure adjacency table, lab evaluation and expiry checks.

Tests cover:
    - adjacency table: terminal states have no exits, QUARANTINED only exits to EXPIRED/DISCARDED
    - ensure_transition raises on moves missing from the table
    - evaluate_lab_results: quarantine beats pending, release needs a screen, typing blocks
    - find_typing_conflicts flags disagreeing PASSED typings only
    - ensure_expirable: future expiry and terminal states rejected
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from bloodtrack.core.domain_types import (
    BloodType, ComponentType, DonationId, InventoryState, LabResultStatus,
    ResultId, TransitionReason, TypingMethod, UnitId, WarningCode,
)
from bloodtrack.core.errors import IllegalTransitionError, UnitNotInTestingError
from bloodtrack.core.ledger_records import (
    BloodUnit, ScreeningResult, TypingResult, UnitSnapshot, new_event,
)
from bloodtrack.core.lifecycle import (
    TERMINAL_STATES, TRANSITIONS, can_transition, ensure_expirable,
    ensure_testing, ensure_transition, evaluate_lab_results,
    find_typing_conflicts, is_terminal,
)

S = InventoryState
NOW = datetime(2025, 10, 19, 9, 0, tzinfo=timezone.utc)
UNIT = UnitId(uuid4())


def _typing(status, blood_type=BloodType.O_NEG, method=TypingMethod.SEROLOGY_FORWARD):
    return TypingResult(ResultId(uuid4()), UNIT, blood_type, method, LabResultStatus(status))


def _screen(code, status):
    return ScreeningResult(ResultId(uuid4()), UNIT, code, LabResultStatus(status))


def _snapshot(status: InventoryState, expires_in=timedelta(days=35)) -> UnitSnapshot:
    unit = BloodUnit(
        UNIT, DonationId(uuid4()), ComponentType.RED_CELLS, "UNIT-0001",
        NOW + expires_in, NOW,
    )
    registered = new_event(UNIT, S.NEW, TransitionReason.REGISTERED, NOW)
    latest = registered
    if status != S.NEW:
        snap = UnitSnapshot(unit, registered, 1)
        latest = new_event(snap, status, TransitionReason.LAB_STARTED, NOW)
    return UnitSnapshot(unit, latest, latest.sequence)


# ─── Adjacency ───────────────────────────────────────────────────

def test_every_state_has_an_adjacency_entry():
    assert set(TRANSITIONS) == set(InventoryState)


def test_terminal_states_have_no_exits():
    assert TERMINAL_STATES == {S.RELEASED, S.EXPIRED, S.DISCARDED}
    for state in TERMINAL_STATES:
        assert TRANSITIONS[state] == frozenset()
        assert is_terminal(state)


def test_quarantined_is_not_terminal():
    assert not is_terminal(S.QUARANTINED)
    assert TRANSITIONS[S.QUARANTINED] == {S.EXPIRED, S.DISCARDED}


def test_new_only_moves_to_testing_expired_or_discarded():
    assert can_transition(S.NEW, S.TESTING)
    assert not can_transition(S.NEW, S.RELEASED)
    assert not can_transition(S.NEW, S.QUARANTINED)


def test_nothing_transitions_back_to_new():
    assert not any(can_transition(state, S.NEW) for state in InventoryState)


def test_ensure_transition_raises_on_illegal_move():
    with pytest.raises(IllegalTransitionError) as exc:
        ensure_transition(S.TESTING, S.TESTING)
    assert exc.value.from_status == "TESTING"
    assert exc.value.to_status == "TESTING"
    assert exc.value.code == "ILLEGAL_TRANSITION"


def test_ensure_transition_accepts_legal_move():
    ensure_transition(S.TESTING, S.RELEASED)


def test_ensure_testing_rejects_other_states():
    ensure_testing(_snapshot(S.TESTING))
    with pytest.raises(UnitNotInTestingError):
        ensure_testing(_snapshot(S.NEW))


# ─── Lab evaluation ─────────────────────────────────────────────

def test_all_passed_with_screen_releases():
    verdict = evaluate_lab_results(
        [_typing("PASSED")], [_screen("HBsAg", "PASSED"), _screen("HIV", "PASSED")],
    )
    assert verdict.to_status == S.RELEASED
    assert verdict.reason == TransitionReason.LAB_PASSED


def test_release_without_typing_results():
    verdict = evaluate_lab_results([], [_screen("HBsAg", "PASSED")])
    assert verdict.to_status == S.RELEASED


def test_no_screen_never_releases():
    verdict = evaluate_lab_results([_typing("PASSED")], [])
    assert verdict.to_status is None
    assert verdict.reason is None


def test_nothing_attached_stays_in_testing():
    assert evaluate_lab_results([], []).to_status is None


@pytest.mark.parametrize("status", ["FAILED", "INDETERMINATE"])
def test_blocking_screen_quarantines(status):
    verdict = evaluate_lab_results([], [_screen("HBsAg", status)])
    assert verdict.to_status == S.QUARANTINED
    assert verdict.reason == TransitionReason.LAB_FAILED


def test_failed_screen_quarantines_even_with_pending_results():
    verdict = evaluate_lab_results(
        [_typing("PENDING")],
        [_screen("HBsAg", "PENDING"), _screen("HIV", "FAILED")],
    )
    assert verdict.to_status == S.QUARANTINED


@pytest.mark.parametrize("status", ["PENDING", "FAILED", "INDETERMINATE"])
def test_non_passed_typing_blocks_release_without_quarantine(status):
    verdict = evaluate_lab_results([_typing(status)], [_screen("HBsAg", "PASSED")])
    assert verdict.to_status is None


def test_pending_screen_blocks_release():
    verdict = evaluate_lab_results(
        [], [_screen("HBsAg", "PASSED"), _screen("HIV", "PENDING")],
    )
    assert verdict.to_status is None


# ─── Typing conflicts ───────────────────────────────────────────

def test_conflicting_typing_is_warned_not_blocked():
    verdict = evaluate_lab_results(
        [
            _typing("PASSED", BloodType.A_POS, TypingMethod.SEROLOGY_FORWARD),
            _typing("PASSED", BloodType.O_POS, TypingMethod.MOLECULAR),
        ],
        [_screen("HBsAg", "PASSED")],
    )
    assert verdict.to_status == S.RELEASED
    assert len(verdict.warnings) == 1
    assert verdict.warnings[0].code == WarningCode.TYPING_CONFLICT
    assert "A+" in verdict.warnings[0].message
    assert "O+" in verdict.warnings[0].message


def test_agreeing_typing_methods_do_not_warn():
    assert find_typing_conflicts([
        _typing("PASSED", BloodType.A_NEG, TypingMethod.SEROLOGY_FORWARD),
        _typing("PASSED", BloodType.A_NEG, TypingMethod.SEROLOGY_REVERSE),
    ]) == ()


def test_non_passed_typing_is_ignored_for_conflicts():
    assert find_typing_conflicts([
        _typing("PASSED", BloodType.A_NEG),
        _typing("FAILED", BloodType.B_NEG),
    ]) == ()


# ─── Expiry ─────────────────────────────────────────────────────

def test_expiry_before_expiration_is_illegal():
    with pytest.raises(IllegalTransitionError):
        ensure_expirable(_snapshot(S.NEW), NOW + timedelta(days=1))


def test_expiry_exactly_at_expiration_is_illegal():
    snapshot = _snapshot(S.NEW)
    with pytest.raises(IllegalTransitionError):
        ensure_expirable(snapshot, snapshot.unit.expiration_time)


def test_expiry_after_expiration_is_allowed():
    ensure_expirable(_snapshot(S.QUARANTINED), NOW + timedelta(days=36))


def test_expiry_of_released_unit_is_illegal():
    with pytest.raises(IllegalTransitionError):
        ensure_expirable(_snapshot(S.RELEASED), NOW + timedelta(days=36))
