"""Person Identity — role attachments on a single immutable record.

Tests:
    - attaching a role returns a new record; the receiver is untouched
    - a second attachment of the same kind is rejected
    - retire_role deactivates without removing
    - facility assignments require STAFF and are deduplicated
    - actor_id only for active staff
"""

from datetime import date
from uuid import uuid4

import pytest

from bloodtrack.core.domain_types import FacilityId, PersonId, RoleKind, StaffRole
from bloodtrack.core.errors import (
    ErrorCategory, RoleAlreadyAttachedError, RoleNotAttachedError,
)
from bloodtrack.core.identity import PersonIdentity


def _alice() -> PersonIdentity:
    return PersonIdentity(
        person_id=PersonId(uuid4()),
        first_name="Alice",
        last_name="Nguyen",
        date_of_birth=date(1979, 11, 2),
    )


def test_attach_role_returns_new_record():
    alice = _alice()
    staff = alice.attach_role(RoleKind.STAFF, "EMP-1002")
    assert staff.has_role(RoleKind.STAFF)
    assert not alice.has_role(RoleKind.STAFF)
    assert staff.person_id == alice.person_id


def test_one_person_can_wear_several_hats():
    person = (
        _alice()
        .attach_role(RoleKind.STAFF, "EMP-1002")
        .attach_role(RoleKind.DONOR, "DNR-5003")
        .attach_role(RoleKind.PATIENT, "MRN-0003")
    )
    assert all(person.has_role(kind) for kind in RoleKind)


def test_same_role_twice_is_rejected():
    donor = _alice().attach_role(RoleKind.DONOR, "DNR-5003")
    with pytest.raises(RoleAlreadyAttachedError):
        donor.attach_role(RoleKind.DONOR, "DNR-9999")


def test_retire_role_keeps_attachment():
    retired = _alice().attach_role(RoleKind.DONOR, "DNR-5003").retire_role(RoleKind.DONOR)
    assert retired.role(RoleKind.DONOR).reference == "DNR-5003"
    assert not retired.has_role(RoleKind.DONOR)


def test_facility_assignment_requires_staff():
    with pytest.raises(RoleNotAttachedError):
        _alice().assign_to_facility(FacilityId(uuid4()), StaffRole.LAB_TECH)


def test_facility_assignment_is_deduplicated():
    lab = FacilityId(uuid4())
    staff = (
        _alice()
        .attach_role(RoleKind.STAFF, "EMP-1002")
        .assign_to_facility(lab, StaffRole.LAB_TECH)
        .assign_to_facility(lab, StaffRole.LAB_TECH)
        .assign_to_facility(lab, StaffRole.QA)
    )
    assert [a.role for a in staff.role(RoleKind.STAFF).assignments] == [
        StaffRole.LAB_TECH, StaffRole.QA,
    ]


def test_actor_id_only_for_active_staff():
    alice = _alice()
    with pytest.raises(RoleNotAttachedError):
        alice.actor_id()
    staff = alice.attach_role(RoleKind.STAFF, "EMP-1002")
    assert staff.actor_id() == alice.person_id
    with pytest.raises(RoleNotAttachedError):
        staff.retire_role(RoleKind.STAFF).actor_id()


def test_missing_staff_role_is_a_business_rule_error():
    with pytest.raises(RoleNotAttachedError) as exc:
        _alice().actor_id()
    assert exc.value.code == "ROLE_NOT_ATTACHED"
    assert exc.value.category == ErrorCategory.BUSINESS_RULE
    assert exc.value.role == "STAFF"
