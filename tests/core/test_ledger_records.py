"""Ledger Records — event construction and message payloads.

Tests:
    - registration event has sequence 1 and no from_status
    - follow-up events chain sequence and from_status from the snapshot
    - event timestamps never precede the latest event
    - to_message renders the publishable payload
    - records are frozen
    - as_utc reads naive timestamps as UTC and converts aware ones
"""

import dataclasses
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from bloodtrack.core.domain_types import (
    ActorId, ComponentType, DonationId, InventoryState, TransitionReason, UnitId,
)
from bloodtrack.core.ledger_records import BloodUnit, UnitSnapshot, as_utc, new_event

NOW = datetime(2025, 10, 19, 9, 0, tzinfo=timezone.utc)
UNIT = UnitId(uuid4())


def _registered_snapshot():
    unit = BloodUnit(
        UNIT, DonationId(uuid4()), ComponentType.WHOLE_BLOOD, "UNIT-0002",
        NOW + timedelta(days=35), NOW,
    )
    event = new_event(UNIT, InventoryState.NEW, TransitionReason.REGISTERED, NOW)
    return UnitSnapshot(unit, event, 1)


def test_registration_event_starts_the_chain():
    snapshot = _registered_snapshot()
    assert snapshot.latest_event.sequence == 1
    assert snapshot.latest_event.from_status is None
    assert snapshot.status == InventoryState.NEW


def test_next_event_chains_from_snapshot():
    actor = ActorId(uuid4())
    event = new_event(
        _registered_snapshot(), InventoryState.TESTING, TransitionReason.LAB_STARTED,
        NOW + timedelta(hours=1), actor,
    )
    assert event.sequence == 2
    assert event.from_status == InventoryState.NEW
    assert event.actor_id == actor


def test_next_event_is_clamped_to_latest_timestamp():
    event = new_event(
        _registered_snapshot(), InventoryState.TESTING, TransitionReason.LAB_STARTED,
        NOW - timedelta(hours=1),
    )
    assert event.occurred_at == NOW


def test_to_message_payload():
    actor = ActorId(uuid4())
    event = new_event(
        _registered_snapshot(), InventoryState.DISCARDED, TransitionReason.DISCARDED,
        NOW, actor, note="Bag damaged",
    )
    assert event.to_message() == {
        "unitId": str(UNIT),
        "fromStatus": "NEW",
        "toStatus": "DISCARDED",
        "reason": "DISCARDED",
        "actorId": str(actor),
        "timestamp": NOW.isoformat(),
    }


def test_registration_message_has_no_from_status_or_actor():
    message = _registered_snapshot().latest_event.to_message()
    assert message["fromStatus"] is None
    assert message["actorId"] is None


def test_events_are_immutable():
    event = _registered_snapshot().latest_event
    with pytest.raises(dataclasses.FrozenInstanceError):
        event.to_status = InventoryState.RELEASED


def test_as_utc_treats_naive_as_utc():
    assert as_utc(datetime(2025, 10, 19, 9, 0)) == NOW
    assert as_utc(datetime(2025, 10, 19, 9, 0)).tzinfo == timezone.utc


def test_as_utc_converts_other_offsets():
    cest = timezone(timedelta(hours=2))
    converted = as_utc(datetime(2025, 10, 19, 11, 0, tzinfo=cest))
    assert converted == NOW
    assert converted.utcoffset() == timedelta(0)
