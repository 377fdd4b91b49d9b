"""Person ORM — one personal record plus role attachments and staff assignments.

Invariants:
    - A person has at most one role row per kind (unique person_id, kind)
    - Role references (donor number, MRN, employee id) are unique per kind
    - Staff assignments are unique per (person, facility, role)

Design Decisions:
    - Single identity table with role rows replaces separate donor/patient/staff tables
      that each pointed back at person
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, String, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from bloodtrack.db.base import Base


class Person(Base):
    """Identity aggregate root — personal data only."""
    __tablename__ = "persons"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    first_name: Mapped[str] = mapped_column(String(80), nullable=False)
    last_name: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    roles: Mapped[list["PersonRole"]] = relationship(
        "PersonRole", back_populates="person",
        cascade="all, delete-orphan", lazy="selectin",
    )
    assignments: Mapped[list["StaffAssignment"]] = relationship(
        "StaffAssignment", back_populates="person",
        cascade="all, delete-orphan", lazy="selectin",
    )


class PersonRole(Base):
    """One hat worn by a person: DONOR, PATIENT or STAFF."""
    __tablename__ = "person_roles"
    __table_args__ = (
        UniqueConstraint("person_id", "kind", name="uq_person_role_kind"),
        UniqueConstraint("kind", "reference", name="uq_person_role_reference"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    person_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("persons.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    reference: Mapped[str] = mapped_column(String(64), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    person: Mapped["Person"] = relationship("Person", back_populates="roles")


class StaffAssignment(Base):
    """Who works where and as what."""
    __tablename__ = "staff_assignments"
    __table_args__ = (
        UniqueConstraint(
            "person_id", "facility_id", "role", name="uq_staff_assignment",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    person_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("persons.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    facility_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("facilities.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    person: Mapped["Person"] = relationship("Person", back_populates="assignments")
