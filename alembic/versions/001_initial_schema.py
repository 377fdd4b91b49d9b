"""Initial schema — identities, facilities, donations, blood units, lab results, inventory events.

Revision ID: 001_initial
Revises: None
Create Date: 2025-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

INVENTORY_STATES = "'NEW','TESTING','RELEASED','QUARANTINED','EXPIRED','DISCARDED'"
LAB_STATUSES = "'PENDING','PASSED','FAILED','INDETERMINATE'"


def upgrade() -> None:
    op.create_table(
        "persons",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.String(80), nullable=False),
        sa.Column("last_name", sa.String(80), nullable=False, index=True),
        sa.Column("date_of_birth", sa.Date, nullable=False),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("phone", sa.String(40), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "facilities",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("facility_code", sa.String(32), nullable=False, unique=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("type", sa.String(16), nullable=False, index=True),
        sa.Column("city", sa.String(80), nullable=True),
        sa.Column("country", sa.String(40), nullable=True, server_default="USA"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "type in ('COLLECTION','LAB','STORAGE','HOSPITAL')", name="ck_facility_type",
        ),
    )

    op.create_table(
        "person_roles",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("person_id", UUID(as_uuid=True), sa.ForeignKey("persons.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("reference", sa.String(64), nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("person_id", "kind", name="uq_person_role_kind"),
        sa.UniqueConstraint("kind", "reference", name="uq_person_role_reference"),
        sa.CheckConstraint("kind in ('DONOR','PATIENT','STAFF')", name="ck_person_role_kind"),
    )

    op.create_table(
        "staff_assignments",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("person_id", UUID(as_uuid=True), sa.ForeignKey("persons.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("facility_id", UUID(as_uuid=True), sa.ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("person_id", "facility_id", "role", name="uq_staff_assignment"),
    )

    op.create_table(
        "donations",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("donor_id", UUID(as_uuid=True), sa.ForeignKey("persons.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("collection_time", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("site_code", sa.String(32), nullable=True),
        sa.Column("collection_facility_id", UUID(as_uuid=True), sa.ForeignKey("facilities.id"), nullable=True),
        sa.Column("collected_by_staff_id", UUID(as_uuid=True), nullable=True),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "blood_units",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("donation_id", UUID(as_uuid=True), sa.ForeignKey("donations.id", ondelete="CASCADE", name="fk_blood_units_donation"), nullable=False, index=True),
        sa.Column("component", sa.String(8), nullable=False),
        sa.Column("unit_code", sa.String(64), nullable=False, unique=True),
        sa.Column("expiration_time", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("inventory_status", sa.String(16), nullable=False, server_default="NEW", index=True),
        sa.Column("revision", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("component in ('WB','RBC','PLT','FFP','CRYO')", name="ck_blood_unit_component"),
        sa.CheckConstraint(f"inventory_status in ({INVENTORY_STATES})", name="ck_blood_unit_status"),
    )

    op.create_table(
        "unit_typing_results",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("blood_unit_id", UUID(as_uuid=True), sa.ForeignKey("blood_units.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("blood_type", sa.String(3), nullable=False),
        sa.Column("method", sa.String(40), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
        sa.Column("tested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("lab_facility_id", UUID(as_uuid=True), nullable=True),
        sa.Column("tested_by_staff_id", UUID(as_uuid=True), nullable=True),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.CheckConstraint(
            "blood_type in ('A+','A-','B+','B-','AB+','AB-','O+','O-')", name="ck_typing_blood_type",
        ),
        sa.CheckConstraint(f"status in ({LAB_STATUSES})", name="ck_typing_status"),
    )

    op.create_table(
        "unit_screening_results",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("blood_unit_id", UUID(as_uuid=True), sa.ForeignKey("blood_units.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("test_code", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
        sa.Column("value", sa.String(64), nullable=True),
        sa.Column("tested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("lab_facility_id", UUID(as_uuid=True), nullable=True),
        sa.Column("tested_by_staff_id", UUID(as_uuid=True), nullable=True),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.UniqueConstraint("blood_unit_id", "test_code", name="uq_screening_unit_test"),
        sa.CheckConstraint(f"status in ({LAB_STATUSES})", name="ck_screening_status"),
    )

    op.create_table(
        "inventory_events",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("blood_unit_id", UUID(as_uuid=True), sa.ForeignKey("blood_units.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("from_status", sa.String(16), nullable=True),
        sa.Column("to_status", sa.String(16), nullable=False),
        sa.Column("reason", sa.String(64), nullable=False),
        sa.Column("actor_staff_id", UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("blood_unit_id", "sequence", name="uq_inventory_event_sequence"),
        sa.CheckConstraint(f"to_status in ({INVENTORY_STATES})", name="ck_event_to_status"),
        sa.CheckConstraint(
            "reason in ('REGISTERED','LAB_STARTED','LAB_PASSED','LAB_FAILED',"
            "'EXPIRED','MANUAL_HOLD','DISCARDED')",
            name="ck_event_reason",
        ),
    )


def downgrade() -> None:
    op.drop_table("inventory_events")
    op.drop_table("unit_screening_results")
    op.drop_table("unit_typing_results")
    op.drop_table("blood_units")
    op.drop_table("donations")
    op.drop_table("staff_assignments")
    op.drop_table("person_roles")
    op.drop_table("facilities")
    op.drop_table("persons")
