"""Custom exceptions and error handling for the shift change request engine.

Every error raised by a service carries a user-facing message, a
machine-readable error code and a details dictionary, so the API layer can
render it without knowing which rule failed.
"""
from typing import Optional, Dict, Any


class ShiftChangeError(Exception):
    """Base class for domain errors with user-friendly messages."""

    status_code = 400
    category = "error"

    def __init__(self, message: str, error_code: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize domain error.

        Args:
            message: User-friendly error message
            error_code: Machine-readable error code
            details: Optional additional error details
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary format for API responses.

        Returns:
            Dictionary with error information
        """
        return {
            "success": False,
            "error": {
                "category": self.category,
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationError(ShiftChangeError):
    """Malformed or missing input. Never mutates state."""

    status_code = 400
    category = "validation"


class MissingFieldError(ValidationError):
    """Error raised when a required field is missing."""

    def __init__(self, field_name: str, context: Optional[str] = None):
        message = f"{field_name} is required."
        if context:
            message = f"{context} requires {field_name}."
        super().__init__(
            message=message,
            error_code="MISSING_FIELD",
            details={"field_name": field_name, "context": context}
        )


class UnsupportedRequestTypeError(ValidationError):
    """Error raised for an unknown request type."""

    def __init__(self, request_type: Any):
        super().__init__(
            message=f"Unsupported request_type: {request_type}",
            error_code="UNSUPPORTED_REQUEST_TYPE",
            details={"request_type": str(request_type)}
        )


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------

class AuthorizationError(ShiftChangeError):
    """Acting user is not allowed to perform the operation."""

    status_code = 403
    category = "authorization"


class NotCurrentApproverError(AuthorizationError):
    """Error raised when the actor is not the inbox user of a request."""

    def __init__(self, request_id: str, acting_user_id: str, inbox_user_id: Optional[str]):
        super().__init__(
            message="You are not the current approver for this request.",
            error_code="NOT_CURRENT_APPROVER",
            details={
                "request_id": request_id,
                "acting_user_id": acting_user_id,
                "inbox_user_id": inbox_user_id
            }
        )


class NotRequestOwnerError(AuthorizationError):
    """Error raised when someone other than the requester retracts a request."""

    def __init__(self, request_id: str, acting_user_id: str):
        super().__init__(
            message="Only the requesting user may retract this request.",
            error_code="NOT_REQUEST_OWNER",
            details={"request_id": request_id, "acting_user_id": acting_user_id}
        )


class NotAssignmentOwnerError(AuthorizationError):
    """Error raised when an assignment does not belong to the expected user."""

    def __init__(self, assignment_id: str, expected_user_id: str, actual_user_id: Optional[str]):
        super().__init__(
            message=f"Assignment {assignment_id} does not belong to user {expected_user_id}.",
            error_code="NOT_ASSIGNMENT_OWNER",
            details={
                "assignment_id": assignment_id,
                "expected_user_id": expected_user_id,
                "actual_user_id": actual_user_id
            }
        )


class OfferCancelNotAllowedError(AuthorizationError):
    """Error raised when an offer is cancelled by someone other than its owner or manager."""

    def __init__(self, offer_id: str, acting_user_id: str):
        super().__init__(
            message="Not allowed to cancel this offer.",
            error_code="OFFER_CANCEL_NOT_ALLOWED",
            details={"offer_id": offer_id, "acting_user_id": acting_user_id}
        )


# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------

class BusinessRuleViolation(ShiftChangeError):
    """A precondition failed. The whole transition is rolled back."""

    status_code = 409
    category = "business_rule"

    def __init__(self, message: str, error_code: str = "BUSINESS_RULE_VIOLATION",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, error_code=error_code, details=details)


class OverlapError(BusinessRuleViolation):
    """Error raised when a user already works an overlapping shift."""

    def __init__(self, user_id: str, shift_date: Any, shift_type_id: str, role: str = "user"):
        super().__init__(
            message=f"{role.capitalize()} has an overlapping shift on {shift_date}.",
            error_code="SHIFT_OVERLAP",
            details={
                "user_id": user_id,
                "shift_date": str(shift_date),
                "shift_type_id": shift_type_id,
                "role": role
            }
        )


class SlotConflictError(BusinessRuleViolation):
    """Error raised when a destination slot is already held."""

    def __init__(self, assignment_id: str, user_id: str, reason: str):
        super().__init__(
            message=f"User {user_id} already holds this slot (assignment {assignment_id}): {reason}.",
            error_code="SLOT_CONFLICT",
            details={
                "conflicting_assignment_id": assignment_id,
                "user_id": user_id,
                "reason": reason
            }
        )


class AbsenceConflictError(BusinessRuleViolation):
    """Error raised when absence state blocks the operation."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, error_code="ABSENCE_CONFLICT", details=details)


class OfferNotActiveError(BusinessRuleViolation):
    """Error raised when an offer is no longer ACTIVE."""

    def __init__(self, offer_id: str, current_status: Any):
        super().__init__(
            message=f"Offer is not ACTIVE (current={_value(current_status)}).",
            error_code="OFFER_NOT_ACTIVE",
            details={"offer_id": offer_id, "current_status": _value(current_status)}
        )


class OfferAlreadyTakenError(BusinessRuleViolation):
    """Error raised when re-offering a shift whose offer was already taken."""

    def __init__(self, offer_id: str, assignment_id: str):
        super().__init__(
            message="This shift was already taken from an offer and cannot be offered again.",
            error_code="OFFER_ALREADY_TAKEN",
            details={"offer_id": offer_id, "assignment_id": assignment_id}
        )


class OfferNotEligibleError(BusinessRuleViolation):
    """Error raised when a user may not see or take an offer."""

    def __init__(self, offer_id: str, user_id: str, reason: str):
        super().__init__(
            message=f"User is not eligible to take this offer: {reason}.",
            error_code="OFFER_NOT_ELIGIBLE",
            details={"offer_id": offer_id, "user_id": user_id, "reason": reason}
        )


class SameSlotSwitchError(BusinessRuleViolation):
    """Error raised when both sides of a switch are the same slot."""

    def __init__(self, source_assignment_id: str, target_assignment_id: str):
        super().__init__(
            message="Switching a shift with the identical slot has no effect.",
            error_code="SAME_SLOT_SWITCH",
            details={
                "source_assignment_id": source_assignment_id,
                "target_assignment_id": target_assignment_id
            }
        )


class SwitchMismatchError(BusinessRuleViolation):
    """Error raised when the two assignments of a switch are not like-for-like."""

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Switch not allowed: {reason}.",
            error_code="SWITCH_MISMATCH",
            details=details
        )


class PeriodLockedError(BusinessRuleViolation):
    """Error raised when a period is approved and its rows may not be deleted."""

    def __init__(self, period_id: str):
        super().__init__(
            message="The shift period is approved and locked.",
            error_code="PERIOD_LOCKED",
            details={"shift_period_id": period_id}
        )


class NoPrimaryManagerError(BusinessRuleViolation):
    """Error raised when routing needs a primary manager that does not exist."""

    def __init__(self, user_id: str):
        super().__init__(
            message=f"User {user_id} has no primary manager; the request cannot be routed.",
            error_code="NO_PRIMARY_MANAGER",
            details={"user_id": user_id}
        )


class InvalidStatusTransitionError(BusinessRuleViolation):
    """Error raised when attempting an invalid status transition."""

    def __init__(self, request_type: Any, current_status: Any, attempted_action: str):
        super().__init__(
            message=(
                f"Cannot {attempted_action} a {_value(request_type)} request "
                f"in status {_value(current_status)}."
            ),
            error_code="INVALID_STATUS_TRANSITION",
            details={
                "request_type": _value(request_type),
                "current_status": _value(current_status),
                "attempted_action": attempted_action
            }
        )


class PendingRequestExistsError(BusinessRuleViolation):
    """Error raised when another in-flight request already references a row."""

    def __init__(self, request_id: str, reference: str):
        super().__init__(
            message=f"Another pending request ({request_id}) already references {reference}.",
            error_code="PENDING_REQUEST_EXISTS",
            details={"request_id": request_id, "reference": reference}
        )


class InvalidAssignmentStateError(BusinessRuleViolation):
    """Error raised when an assignment is in the wrong state for the operation."""

    def __init__(self, assignment_id: str, reason: str):
        super().__init__(
            message=f"Assignment {assignment_id} cannot be used: {reason}.",
            error_code="INVALID_ASSIGNMENT_STATE",
            details={"assignment_id": assignment_id, "reason": reason}
        )


# ---------------------------------------------------------------------------
# Not found / store
# ---------------------------------------------------------------------------

class NotFoundError(ShiftChangeError):
    """Referenced row does not exist."""

    status_code = 404
    category = "not_found"


class ResourceNotFoundError(NotFoundError):
    """Error raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            message=f"{resource_type.replace('_', ' ').capitalize()} not found. (ID: {resource_id})",
            error_code="RESOURCE_NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": str(resource_id)
            }
        )


class StoreError(ShiftChangeError):
    """The transactional store failed unexpectedly."""

    status_code = 500
    category = "store"

    def __init__(self, operation: str, constraint: Optional[str] = None,
                 table: Optional[str] = None, cause: Optional[str] = None):
        super().__init__(
            message="An internal storage error occurred. The change was not applied.",
            error_code="STORE_ERROR",
            details={
                "operation": operation,
                "constraint": constraint,
                "table": table,
                "cause": cause
            }
        )


def _value(value: Any) -> Any:
    return getattr(value, "value", value)


def format_error_for_api(error: ShiftChangeError) -> Dict[str, Any]:
    """
    Format domain error for API response.

    Args:
        error: Domain error to format

    Returns:
        Dictionary suitable for JSON API response
    """
    return error.to_dict()
