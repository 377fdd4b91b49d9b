"""BloodUnit ORM — one component derived from a donation.

Invariants:
    - inventory_status is a projection of the latest inventory event; it is written
      ONLY by the conditional update that accompanies an event insert
    - revision increases by one on every mutation (event append or lab-result attach)
    - unit_code is unique (label/barcode)

Design Decisions:
    - Row-versioned table: UPDATE ... WHERE revision = :expected is the
      compare-and-append that serializes writers per unit
    - inventory_status kept for status-filtered listings; reads of a single unit's
      status go through the event log
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from bloodtrack.db.base import Base


class BloodUnit(Base):
    __tablename__ = "blood_units"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    donation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("donations.id", ondelete="CASCADE", name="fk_blood_units_donation"),
        nullable=False, index=True,
    )
    component: Mapped[str] = mapped_column(String(8), nullable=False)
    unit_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    expiration_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True,
    )
    inventory_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="NEW", index=True,
    )
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
