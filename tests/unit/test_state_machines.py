"""Unit tests for certificate and notification status transitions."""

import pytest

from coi_compliance.core.exceptions import InvalidStatusTransitionError
from coi_compliance.schemas.enums import NotificationStatus, ProcessingStatus
from coi_compliance.services.state_machines import (
    can_transition,
    ensure_notification_transition,
    ensure_transition,
)


class TestCertificateTransitions:

    @pytest.mark.parametrize(
        "current,target",
        [
            (ProcessingStatus.PROCESSING, ProcessingStatus.EXTRACTED),
            (ProcessingStatus.PROCESSING, ProcessingStatus.FAILED),
            (ProcessingStatus.EXTRACTED, ProcessingStatus.REVIEW_CONFIRMED),
            (ProcessingStatus.EXTRACTED, ProcessingStatus.FAILED),
        ],
    )
    def test_allowed(self, current, target):
        assert ensure_transition(current, target) == target

    @pytest.mark.parametrize(
        "current,target",
        [
            (ProcessingStatus.PROCESSING, ProcessingStatus.REVIEW_CONFIRMED),
            (ProcessingStatus.REVIEW_CONFIRMED, ProcessingStatus.EXTRACTED),
            (ProcessingStatus.FAILED, ProcessingStatus.PROCESSING),
            (ProcessingStatus.FAILED, ProcessingStatus.EXTRACTED),
        ],
    )
    def test_rejected(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(InvalidStatusTransitionError):
            ensure_transition(current, target)

    def test_accepts_stored_string_values(self):
        assert ensure_transition("processing", ProcessingStatus.EXTRACTED) == ProcessingStatus.EXTRACTED


class TestNotificationTransitions:

    @pytest.mark.parametrize(
        "target",
        [NotificationStatus.SENT, NotificationStatus.FAILED, NotificationStatus.CANCELLED],
    )
    def test_scheduled_can_move(self, target):
        assert ensure_notification_transition(NotificationStatus.SCHEDULED, target) == target

    @pytest.mark.parametrize(
        "current", [NotificationStatus.SENT, NotificationStatus.FAILED, NotificationStatus.CANCELLED]
    )
    def test_terminal_notifications_cannot_be_cancelled(self, current):
        with pytest.raises(InvalidStatusTransitionError):
            ensure_notification_transition(current, NotificationStatus.CANCELLED)
