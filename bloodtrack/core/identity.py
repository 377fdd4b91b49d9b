"""Person Identity — one personal record wearing many role hats.

Invariants:
    - PersonIdentity is immutable; attaching or retiring a role returns a new record
    - At most one RoleAttachment per RoleKind per person
    - Staff facility assignments are unique per (facility, role)
    - The ledger only ever sees opaque ids derived from here (actor_id)

Design Decisions:
    - Role attachments over subclass hierarchies: a phlebotomist can also be a donor
      without duplicating the personal record
"""

from dataclasses import dataclass, field, replace
from datetime import date

from bloodtrack.core.domain_types import (
    ActorId, FacilityId, PersonId, RoleKind, StaffRole,
)
from bloodtrack.core.errors import RoleAlreadyAttachedError, RoleNotAttachedError


@dataclass(frozen=True)
class FacilityAssignment:
    facility_id: FacilityId
    role: StaffRole
    active: bool = True


@dataclass(frozen=True)
class RoleAttachment:
    """One hat: donor number, patient MRN or staff employee id."""
    kind: RoleKind
    reference: str
    active: bool = True
    assignments: tuple[FacilityAssignment, ...] = ()


@dataclass(frozen=True)
class PersonIdentity:
    person_id: PersonId
    first_name: str
    last_name: str
    date_of_birth: date
    email: str | None = None
    phone: str | None = None
    roles: tuple[RoleAttachment, ...] = field(default_factory=tuple)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def role(self, kind: RoleKind) -> RoleAttachment | None:
        return next((r for r in self.roles if r.kind == kind), None)

    def has_role(self, kind: RoleKind) -> bool:
        attachment = self.role(kind)
        return attachment is not None and attachment.active

    def attach_role(self, kind: RoleKind, reference: str) -> "PersonIdentity":
        if self.role(kind) is not None:
            raise RoleAlreadyAttachedError(str(self.person_id), kind.value)
        return replace(self, roles=(*self.roles, RoleAttachment(kind, reference)))

    def retire_role(self, kind: RoleKind) -> "PersonIdentity":
        """Deactivate a role; the attachment stays for provenance lookups."""
        return replace(self, roles=tuple(
            replace(r, active=False) if r.kind == kind else r for r in self.roles
        ))

    def assign_to_facility(
        self, facility_id: FacilityId, role: StaffRole,
    ) -> "PersonIdentity":
        staff = self.role(RoleKind.STAFF)
        if staff is None:
            raise RoleNotAttachedError(str(self.person_id), RoleKind.STAFF.value)
        assignment = FacilityAssignment(facility_id, role)
        if any(
            a.facility_id == facility_id and a.role == role for a in staff.assignments
        ):
            return self
        updated = replace(staff, assignments=(*staff.assignments, assignment))
        return replace(self, roles=tuple(
            updated if r.kind == RoleKind.STAFF else r for r in self.roles
        ))

    def actor_id(self) -> ActorId:
        """Opaque actor reference for ledger provenance. Only active staff act."""
        if not self.has_role(RoleKind.STAFF):
            raise RoleNotAttachedError(str(self.person_id), RoleKind.STAFF.value)
        return ActorId(self.person_id)
