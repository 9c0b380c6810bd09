"""Status transition tables for certificates and notifications.

Certificates: processing -> extracted -> review_confirmed, with failure
possible from processing or extracted. review_confirmed and failed are
terminal: a correction is a new certificate, never a resurrected one.

Notifications only ever leave ``scheduled``.
"""

from typing import Dict, FrozenSet

from coi_compliance.core.exceptions import InvalidStatusTransitionError
from coi_compliance.schemas.enums import NotificationStatus, ProcessingStatus

CERTIFICATE_TRANSITIONS: Dict[ProcessingStatus, FrozenSet[ProcessingStatus]] = {
    ProcessingStatus.PROCESSING: frozenset({ProcessingStatus.EXTRACTED, ProcessingStatus.FAILED}),
    ProcessingStatus.EXTRACTED: frozenset({ProcessingStatus.REVIEW_CONFIRMED, ProcessingStatus.FAILED}),
    ProcessingStatus.REVIEW_CONFIRMED: frozenset(),
    ProcessingStatus.FAILED: frozenset(),
}

NOTIFICATION_TRANSITIONS: Dict[NotificationStatus, FrozenSet[NotificationStatus]] = {
    NotificationStatus.SCHEDULED: frozenset({
        NotificationStatus.SENT,
        NotificationStatus.FAILED,
        NotificationStatus.CANCELLED,
    }),
    NotificationStatus.SENT: frozenset(),
    NotificationStatus.FAILED: frozenset(),
    NotificationStatus.CANCELLED: frozenset(),
}


def can_transition(current: ProcessingStatus, target: ProcessingStatus) -> bool:
    return target in CERTIFICATE_TRANSITIONS[ProcessingStatus(current)]


def ensure_transition(current: ProcessingStatus, target: ProcessingStatus) -> ProcessingStatus:
    """Validate a certificate status move and return the target status.

    Raises:
        InvalidStatusTransitionError: If the move is not allowed
    """
    current = ProcessingStatus(current)
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(
            f"Certificate cannot move from {current.value} to {target.value}"
        )
    return target


def ensure_notification_transition(
    current: NotificationStatus, target: NotificationStatus
) -> NotificationStatus:
    """Notification statuses only ever leave ``scheduled``."""
    current = NotificationStatus(current)
    if target not in NOTIFICATION_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(
            f"Notification cannot move from {current.value} to {target.value}"
        )
    return target
