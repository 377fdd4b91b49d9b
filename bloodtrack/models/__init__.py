"""ORM Models — SQLAlchemy declarative models for all persisted entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Inventory events are insert-only; no code path updates or deletes them

Design Decisions:
    - One file per aggregate for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from bloodtrack.models.person import Person, PersonRole, StaffAssignment  # noqa: F401
from bloodtrack.models.facility import Facility  # noqa: F401
from bloodtrack.models.donation import Donation  # noqa: F401
from bloodtrack.models.blood_unit import BloodUnit  # noqa: F401
from bloodtrack.models.lab_result import TypingResult, ScreeningResult  # noqa: F401
from bloodtrack.models.inventory_event import InventoryEvent  # noqa: F401
