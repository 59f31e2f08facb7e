"""
Booking status transition rules.

Admin status changes are checked against VALID_TRANSITIONS. Some valid
transitions still carry warnings or need an explicit confirmation from
the admin before they are applied.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from detailing.models.booking import BookingStatus, PaymentStatus

S = BookingStatus

VALID_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
    S.PENDING: {S.PROCESSING, S.CONFIRMED, S.DECLINED, S.CANCELLED},
    S.PROCESSING: {S.CONFIRMED, S.PAYMENT_FAILED, S.CANCELLED},
    S.PAYMENT_FAILED: {S.PROCESSING, S.CANCELLED},
    S.CONFIRMED: {S.IN_PROGRESS, S.RESCHEDULED, S.CANCELLED, S.NO_SHOW},
    S.RESCHEDULED: {S.IN_PROGRESS, S.CONFIRMED, S.CANCELLED, S.NO_SHOW},
    S.IN_PROGRESS: {S.COMPLETED, S.CANCELLED},
    S.COMPLETED: {S.IN_PROGRESS},
    S.DECLINED: {S.PENDING},
    S.CANCELLED: {S.PENDING},
    S.NO_SHOW: {S.PENDING},
}

STATUS_CATEGORIES: Dict[str, Set[BookingStatus]] = {
    "active": {S.PENDING, S.PROCESSING, S.CONFIRMED, S.RESCHEDULED, S.IN_PROGRESS},
    "payment_required": {S.PROCESSING, S.PAYMENT_FAILED},
    "service_ready": {S.CONFIRMED, S.RESCHEDULED},
    "inactive": {S.DECLINED, S.CANCELLED, S.NO_SHOW},
}

STATUS_LABELS: Dict[BookingStatus, str] = {
    S.PENDING: "Pending Review",
    S.PROCESSING: "Processing Payment",
    S.PAYMENT_FAILED: "Payment Failed",
    S.CONFIRMED: "Confirmed",
    S.RESCHEDULED: "Rescheduled",
    S.IN_PROGRESS: "In Progress",
    S.COMPLETED: "Completed",
    S.DECLINED: "Declined",
    S.CANCELLED: "Cancelled",
    S.NO_SHOW: "No Show",
}

# Targets an admin must explicitly confirm
DESTRUCTIVE_STATUSES = {S.CANCELLED, S.DECLINED, S.NO_SHOW}


@dataclass
class TransitionValidation:
    is_valid: bool
    reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    requires_confirmation: bool = False


def is_valid_transition(from_status: BookingStatus, to_status: BookingStatus) -> bool:
    return to_status in VALID_TRANSITIONS.get(from_status, set())


def get_valid_next_statuses(status: BookingStatus) -> List[BookingStatus]:
    """Allowed next statuses, in declaration order of the enum."""
    allowed = VALID_TRANSITIONS.get(status, set())
    return [s for s in BookingStatus if s in allowed]


def get_status_label(status: BookingStatus) -> str:
    return STATUS_LABELS.get(status, status.value.replace("_", " ").title())


def get_status_category(status: BookingStatus) -> Optional[str]:
    """Primary category for a status; payment categories win over 'active'."""
    for category in ("payment_required", "service_ready", "inactive", "active"):
        if status in STATUS_CATEGORIES[category]:
            return category
    return None


def is_active_status(status: BookingStatus) -> bool:
    return status in STATUS_CATEGORIES["active"]


def validate_transition(
    from_status: BookingStatus,
    to_status: BookingStatus,
    payment_status: Optional[PaymentStatus] = None,
) -> TransitionValidation:
    """Check a transition and collect warnings for the admin UI."""
    if from_status == to_status:
        return TransitionValidation(
            is_valid=False,
            reason=f"Booking is already {get_status_label(from_status).lower()}",
        )

    if not is_valid_transition(from_status, to_status):
        return TransitionValidation(
            is_valid=False,
            reason=f"Cannot transition from {from_status.value} to {to_status.value}",
        )

    result = TransitionValidation(is_valid=True)

    if (
        from_status == S.PROCESSING
        and to_status == S.CONFIRMED
        and payment_status != PaymentStatus.PAID
    ):
        result.warnings.append("Payment has not been completed for this booking")
        result.requires_confirmation = True

    if to_status == S.IN_PROGRESS and from_status not in STATUS_CATEGORIES["service_ready"] \
            and from_status != S.COMPLETED:
        result.warnings.append("Service should only start on a confirmed booking")

    if to_status == S.COMPLETED and from_status != S.IN_PROGRESS:
        result.warnings.append("Booking was not marked as in progress")

    if from_status == S.COMPLETED:
        result.warnings.append("Reopening a completed booking")
        result.requires_confirmation = True

    if to_status in DESTRUCTIVE_STATUSES:
        result.warnings.append(
            f"Marking as {get_status_label(to_status).lower()} will release the time slot"
        )
        result.requires_confirmation = True

    return result
