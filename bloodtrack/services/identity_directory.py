"""Identity Directory — persists PersonIdentity records with their role attachments.

Invariants:
    - Personal fields are written once at creation and never updated here
    - Role and assignment rows are upserted by (kind) and (facility, role)
    - Roles are never deleted, only deactivated (provenance references stay resolvable)

Design Decisions:
    - Thin mapping layer over the person tables: all role rules live in core/identity.py,
      this module only mirrors an identity into rows and back
"""

import logging

from sqlalchemy import select

from bloodtrack.core.domain_types import FacilityId, PersonId, RoleKind, StaffRole
from bloodtrack.core.identity import FacilityAssignment, PersonIdentity, RoleAttachment
from bloodtrack.models.person import Person, PersonRole, StaffAssignment
from bloodtrack.infrastructure.database import DatabaseSessionManager

logger = logging.getLogger(__name__)


class SqlIdentityDirectory:
    """Stores and loads person identities."""

    def __init__(self, db: DatabaseSessionManager):
        self._db = db

    async def save(self, identity: PersonIdentity) -> None:
        async with self._db.session() as db:
            person = (await db.execute(
                select(Person).where(Person.id == identity.person_id),
            )).scalar_one_or_none()
            if person is None:
                person = Person(
                    id=identity.person_id,
                    first_name=identity.first_name,
                    last_name=identity.last_name,
                    date_of_birth=identity.date_of_birth,
                    email=identity.email,
                    phone=identity.phone,
                )
                person.roles = []
                person.assignments = []
                db.add(person)

            rows_by_kind = {r.kind: r for r in person.roles}
            for attachment in identity.roles:
                row = rows_by_kind.get(attachment.kind.value)
                if row is None:
                    person.roles.append(PersonRole(
                        kind=attachment.kind.value,
                        reference=attachment.reference,
                        active=attachment.active,
                    ))
                else:
                    row.active = attachment.active

            staff = identity.role(RoleKind.STAFF)
            existing = {(a.facility_id, a.role): a for a in person.assignments}
            for assignment in (staff.assignments if staff else ()):
                row = existing.get((assignment.facility_id, assignment.role.value))
                if row is None:
                    person.assignments.append(StaffAssignment(
                        facility_id=assignment.facility_id,
                        role=assignment.role.value,
                        active=assignment.active,
                    ))
                else:
                    row.active = assignment.active

            await db.commit()
        logger.info(
            f"Saved identity {identity.person_id} "
            f"with roles {[r.kind.value for r in identity.roles]}",
        )

    async def get(self, person_id: PersonId) -> PersonIdentity | None:
        async with self._db.session() as db:
            person = (await db.execute(
                select(Person).where(Person.id == person_id),
            )).scalar_one_or_none()
            if person is None:
                return None
            assignments = tuple(
                FacilityAssignment(FacilityId(a.facility_id), StaffRole(a.role), a.active)
                for a in person.assignments
            )
            roles = tuple(
                RoleAttachment(
                    kind=RoleKind(r.kind),
                    reference=r.reference,
                    active=r.active,
                    assignments=assignments if r.kind == RoleKind.STAFF.value else (),
                )
                for r in person.roles
            )
            return PersonIdentity(
                person_id=PersonId(person.id),
                first_name=person.first_name,
                last_name=person.last_name,
                date_of_birth=person.date_of_birth,
                email=person.email,
                phone=person.phone,
                roles=roles,
            )
