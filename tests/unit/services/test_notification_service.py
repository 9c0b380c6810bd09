"""Unit tests for notification delivery, cancellation and follow-ups."""

from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from coi_compliance.core.exceptions import InvalidStatusTransitionError, NotFoundError
from coi_compliance.database.models import Vendor
from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.schemas.enums import (
    ComplianceStatus,
    EntityKind,
    NotificationStatus,
    NotificationType,
)
from coi_compliance.schemas.notifications import SendResult
from coi_compliance.services.notifications.notification_service import (
    NO_CONTACT_ERROR,
    NotificationService,
)


def notification(**overrides) -> SimpleNamespace:
    fields = dict(
        id=uuid4(),
        vendor_id=uuid4(),
        tenant_id=None,
        type=NotificationType.EXPIRATION_WARNING.value,
        status=NotificationStatus.SCHEDULED.value,
        target_date=date(2025, 6, 15),
        scheduled_date=date(2025, 6, 15),
        sent_date=None,
        recipient="ops@acme.test",
        email_subject="Your certificate expires soon",
        email_body="<p>...</p>",
        error_message=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture
def sender() -> AsyncMock:
    sender = AsyncMock()
    sender.send.return_value = SendResult(success=True, message_id="msg_1")
    return sender


@pytest.fixture
def service(mock_session, sender) -> NotificationService:
    service = NotificationService(mock_session, sender=sender, compliance_service=AsyncMock())
    for name in (
        "notification_repo",
        "entity_repo",
        "certificate_repo",
        "compliance_repo",
        "property_repo",
        "links",
    ):
        setattr(service, name, AsyncMock())
    service.notification_repo.transition.return_value = True
    return service


class TestProcessDue:

    @pytest.mark.asyncio
    async def test_sends_due_and_fails_missing_recipients(self, service, sender, now):
        deliverable = notification()
        no_contact = notification(recipient=None)
        service.notification_repo.list_due.return_value = [deliverable, no_contact]

        sent, failed = await service.process_due_notifications(now=now)

        assert (sent, failed) == (1, 1)
        sender.send.assert_awaited_once_with(
            "ops@acme.test", "Your certificate expires soon", "<p>...</p>"
        )
        service.notification_repo.list_due.assert_awaited_once_with(now.date(), limit=50)
        calls = service.notification_repo.transition.await_args_list
        assert calls[0].args == (deliverable.id, NotificationStatus.SENT)
        assert calls[0].kwargs == {"sent_date": now, "error_message": None}
        assert calls[1].args == (no_contact.id, NotificationStatus.FAILED)
        assert calls[1].kwargs == {"sent_date": None, "error_message": NO_CONTACT_ERROR}

    @pytest.mark.asyncio
    async def test_send_failure_is_final(self, service, sender, now):
        sender.send.return_value = SendResult(success=False, error="Resend error 500")
        service.notification_repo.list_due.return_value = [notification()]

        sent, failed = await service.process_due_notifications(now=now)

        assert (sent, failed) == (0, 1)
        assert service.notification_repo.transition.await_args.kwargs["error_message"] == "Resend error 500"


class TestCancel:

    @pytest.mark.asyncio
    async def test_scheduled_notification_is_cancelled(self, service):
        row = notification()
        service.notification_repo.get_by_id.return_value = row

        await service.cancel_notification(row.id)

        service.notification_repo.transition.assert_awaited_once_with(row.id, NotificationStatus.CANCELLED)

    @pytest.mark.asyncio
    async def test_sent_notification_cannot_be_cancelled(self, service):
        row = notification(status=NotificationStatus.SENT.value)
        service.notification_repo.get_by_id.return_value = row

        with pytest.raises(InvalidStatusTransitionError):
            await service.cancel_notification(row.id)

        service.notification_repo.transition.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_notification(self, service):
        service.notification_repo.get_by_id.return_value = None

        with pytest.raises(NotFoundError):
            await service.cancel_notification(uuid4())


class TestFollowUp:

    @pytest.fixture
    def vendor(self, service) -> Vendor:
        row = Vendor(
            id=uuid4(),
            property_id=None,
            company_name="Acme Plumbing",
            contact_email="ops@acme.test",
            compliance_status=ComplianceStatus.NON_COMPLIANT.value,
            notifications_paused=False,
        )
        service.entity_repo.get.return_value = row
        service.links.get_or_create.return_value = (SimpleNamespace(token="abc123"), True)
        service.certificate_repo.find_latest_confirmed.return_value = None
        service.notification_repo.create.side_effect = lambda **kwargs: notification(
            **{k: v for k, v in kwargs.items() if k != "entity_key"}
        )
        return row

    @pytest.mark.asyncio
    async def test_follow_up_is_sent_with_portal_link(self, service, sender, vendor, now):
        result = await service.send_follow_up(EntityRef(kind=EntityKind.VENDOR, id=vendor.id), now=now)

        assert result.portal_url.endswith("/portal/abc123")
        assert result.notification.status == NotificationStatus.SENT
        kwargs = service.notification_repo.create.await_args.kwargs
        assert kwargs["type"] == NotificationType.FOLLOW_UP_REMINDER.value
        assert "target_date" not in kwargs
        assert "abc123" in sender.send.await_args.args[2]

    @pytest.mark.asyncio
    async def test_follow_up_without_contact_is_recorded_as_failed(self, service, sender, vendor, now):
        vendor.contact_email = None

        result = await service.send_follow_up(EntityRef(kind=EntityKind.VENDOR, id=vendor.id), now=now)

        assert result.notification.status == NotificationStatus.FAILED
        assert result.notification.error_message == NO_CONTACT_ERROR
        sender.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_scheduler_run_summarizes_both_halves(service, now, mock_session):
    service.compliance_service.reevaluate_all.return_value = [
        SimpleNamespace(notifications_created=2, notifications_cancelled=1),
        SimpleNamespace(notifications_created=0, notifications_cancelled=0),
    ]
    service.notification_repo.list_due.return_value = [notification()]

    summary = await service.run_scheduler(today=now.date(), now=now)

    assert summary.evaluated == 2
    assert summary.scheduled == 2
    assert summary.cancelled == 1
    assert summary.sent == 1
    assert mock_session.commit.await_count == 2
