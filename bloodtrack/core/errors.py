"""Error Hierarchy — typed, categorized exceptions for all BloodTrack failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable by the caller; infrastructure errors (500-level) are critical
    - Only ConcurrentModificationError is meant to be retried (after re-reading state)
    - to_response() produces the REST envelope; no internal details leaked

Design Decisions:
    - Single hierarchy with BloodTrackError base: callers catch one type at the boundary
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    unit_id: str | None = None
    current_status: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class BloodTrackError(Exception):
    """Base exception for all BloodTrack errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    @property
    def retryable(self) -> bool:
        return self.category == ErrorCategory.CONFLICT and self.code == "CONCURRENT_MODIFICATION"

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "unit_id": self.context.unit_id,
                    "current_status": self.context.current_status,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class UnitNotFoundError(BloodTrackError):
    """Blood unit does not exist or has no events."""
    def __init__(self, unit_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.unit_id = unit_id
        super().__init__(
            f"Blood unit '{unit_id}' not found",
            "UNIT_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, ctx, 404,
        )


class InvalidDonationReferenceError(BloodTrackError):
    """Unit registration referenced a donation that does not exist."""
    def __init__(self, donation_id: str, context: ErrorContext | None = None):
        super().__init__(
            f"Donation '{donation_id}' does not exist",
            "INVALID_DONATION_REFERENCE", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 422,
        )
        self.donation_id = donation_id


class IllegalTransitionError(BloodTrackError):
    """Requested transition is not permitted from the unit's current state."""
    def __init__(
        self,
        from_status: str | None,
        to_status: str,
        detail: str | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.current_status = from_status
        message = f"Illegal transition {from_status} -> {to_status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(
            message, "ILLEGAL_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, ctx, 409,
        )
        self.from_status = from_status
        self.to_status = to_status


class UnitNotInTestingError(BloodTrackError):
    """Lab result or evaluation attempted while the unit is not in TESTING."""
    def __init__(self, unit_id: str, status: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.unit_id = unit_id
        ctx.current_status = status
        super().__init__(
            f"Blood unit '{unit_id}' is {status}, not TESTING",
            "UNIT_NOT_IN_TESTING", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, ctx, 409,
        )
        self.status = status


class DuplicateLabResultError(BloodTrackError):
    """A screening result for this test code is already attached to the unit."""
    def __init__(self, unit_id: str, test_code: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.unit_id = unit_id
        super().__init__(
            f"Screening result '{test_code}' already recorded for unit '{unit_id}'",
            "DUPLICATE_LAB_RESULT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, ctx, 409,
        )
        self.test_code = test_code


class RoleAlreadyAttachedError(BloodTrackError):
    """Person already wears this role."""
    def __init__(self, person_id: str, role: str, context: ErrorContext | None = None):
        super().__init__(
            f"Person '{person_id}' already has role {role}",
            "ROLE_ALREADY_ATTACHED", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )
        self.role = role


class RoleNotAttachedError(BloodTrackError):
    """Operation needs a role the person does not actively hold."""
    def __init__(self, person_id: str, role: str, context: ErrorContext | None = None):
        super().__init__(
            f"Person '{person_id}' has no active role {role}",
            "ROLE_NOT_ATTACHED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 409,
        )
        self.role = role


class ConcurrentModificationError(BloodTrackError):
    """Optimistic append lost the race — re-read current status and retry."""
    def __init__(
        self, unit_id: str, expected_revision: int, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.unit_id = unit_id
        super().__init__(
            f"Blood unit '{unit_id}' changed since revision {expected_revision}",
            "CONCURRENT_MODIFICATION", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )
        self.expected_revision = expected_revision


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(BloodTrackError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
