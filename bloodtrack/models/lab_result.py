"""Lab Result ORM — typing and screening findings with provenance.

Invariants:
    - Rows are insert-only (lab results are immutable facts)
    - At most one screening result per (unit, test_code)
    - lab_facility_id / tested_by_staff_id are opaque references (no FK): the ledger
      never validates identity, the provenance store does

Design Decisions:
    - Two tables, as in the lab domain: typing is per method, screening per test code
"""

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from bloodtrack.db.base import Base


class TypingResult(Base):
    __tablename__ = "unit_typing_results"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    blood_unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("blood_units.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    blood_type: Mapped[str] = mapped_column(String(3), nullable=False)
    method: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    tested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    lab_facility_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )
    tested_by_staff_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(String(255), nullable=True)


class ScreeningResult(Base):
    __tablename__ = "unit_screening_results"
    __table_args__ = (
        UniqueConstraint("blood_unit_id", "test_code", name="uq_screening_unit_test"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    blood_unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("blood_units.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    test_code: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    value: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    lab_facility_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )
    tested_by_staff_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(String(255), nullable=True)
