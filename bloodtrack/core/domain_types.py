"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - UnitId, DonationId, ActorId, FacilityId wrap UUIDs — never use bare UUID in domain logic
    - All valid states encoded as Enums — no raw string matching
    - Enum values match the database domain values (blood_unit.inventory_status etc.)

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders and store as plain strings
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

UnitId = NewType("UnitId", UUID)
DonationId = NewType("DonationId", UUID)
ActorId = NewType("ActorId", UUID)          # staff member acting on a unit
FacilityId = NewType("FacilityId", UUID)
PersonId = NewType("PersonId", UUID)
EventId = NewType("EventId", UUID)
ResultId = NewType("ResultId", UUID)


# ─── Enums ───────────────────────────────────────────────────────

class InventoryState(str, Enum):
    """Blood unit lifecycle states — maps to DB `inventory_status` column."""
    NEW = "NEW"
    TESTING = "TESTING"
    RELEASED = "RELEASED"
    QUARANTINED = "QUARANTINED"
    EXPIRED = "EXPIRED"
    DISCARDED = "DISCARDED"


class TransitionReason(str, Enum):
    """Closed set of reasons an inventory event may carry."""
    REGISTERED = "REGISTERED"
    LAB_STARTED = "LAB_STARTED"
    LAB_PASSED = "LAB_PASSED"
    LAB_FAILED = "LAB_FAILED"
    EXPIRED = "EXPIRED"
    MANUAL_HOLD = "MANUAL_HOLD"
    DISCARDED = "DISCARDED"


class LabResultStatus(str, Enum):
    """Status of a single typing or screening finding."""
    PENDING = "PENDING"
    PASSED = "PASSED"
    FAILED = "FAILED"
    INDETERMINATE = "INDETERMINATE"


class ComponentType(str, Enum):
    """Blood component a unit carries."""
    WHOLE_BLOOD = "WB"
    RED_CELLS = "RBC"
    PLATELETS = "PLT"
    PLASMA = "FFP"
    CRYOPRECIPITATE = "CRYO"


class BloodType(str, Enum):
    """ABO/Rh blood types."""
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"


class TypingMethod(str, Enum):
    SEROLOGY_FORWARD = "serology_forward"
    SEROLOGY_REVERSE = "serology_reverse"
    MOLECULAR = "molecular"


class FacilityType(str, Enum):
    COLLECTION = "COLLECTION"
    LAB = "LAB"
    STORAGE = "STORAGE"
    HOSPITAL = "HOSPITAL"


class StaffRole(str, Enum):
    """Role a staff member holds at a facility."""
    PHLEBOTOMIST = "PHLEBOTOMIST"
    LAB_TECH = "LAB_TECH"
    SUPERVISOR = "SUPERVISOR"
    QA = "QA"
    DRIVER = "DRIVER"


class RoleKind(str, Enum):
    """Hats a single person identity can wear."""
    DONOR = "DONOR"
    PATIENT = "PATIENT"
    STAFF = "STAFF"


class WarningCode(str, Enum):
    """Data-quality warnings surfaced to callers (never block a transition)."""
    TYPING_CONFLICT = "TYPING_CONFLICT"
