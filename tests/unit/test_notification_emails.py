"""Unit tests for notification email rendering and sending."""

from datetime import date
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from coi_compliance.schemas.enums import NotificationType
from coi_compliance.services.notifications.email_sender import EmailSender
from coi_compliance.services.notifications.email_templates import EmailFields, render


@pytest.fixture
def fields() -> EmailFields:
    return EmailFields(
        entity_name="Acme <Plumbing>",
        property_name="Harbor View",
        portal_link="https://app.test/portal/abc",
        expiration_date=date(2025, 7, 1),
        days_until_expiration=14,
        gaps=["Automobile Liability is required but not found on certificate"],
    )


class TestTemplates:

    @pytest.mark.parametrize(
        "notification_type",
        [t for t in NotificationType if t != NotificationType.PORTAL_UPLOAD],
    )
    def test_outbound_types_render_with_portal_link(self, notification_type, fields):
        content = render(notification_type, fields)

        assert content.subject
        assert "https://app.test/portal/abc" in content.body

    def test_entity_name_is_escaped(self, fields):
        content = render(NotificationType.GAP_NOTIFICATION, fields)

        assert "Acme &lt;Plumbing&gt;" in content.body
        assert "Automobile Liability is required" in content.body

    def test_portal_upload_notice_names_the_uploader(self, fields):
        content = render(NotificationType.PORTAL_UPLOAD, fields)

        assert content.subject == "Acme <Plumbing> uploaded a new certificate for Harbor View"


class TestEmailSender:

    @pytest.mark.asyncio
    async def test_without_api_key_logs_instead_of_sending(self):
        sender = EmailSender(api_key="")
        post = AsyncMock()
        with patch("httpx.AsyncClient.post", post):
            result = await sender.send("ops@acme.test", "Subject", "<p>Body</p>")

        assert result.success
        assert result.dev_mode
        post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sends_through_resend(self):
        sender = EmailSender(api_key="re_test", api_url="https://resend.test/emails")
        ok = httpx.Response(200, json={"id": "msg_1"}, request=httpx.Request("POST", "https://resend.test/emails"))
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=ok)):
            result = await sender.send("ops@acme.test", "Subject", "<p>Body</p>")

        assert result.success
        assert result.message_id == "msg_1"

    @pytest.mark.asyncio
    async def test_api_error_is_a_failed_result(self):
        sender = EmailSender(api_key="re_test", api_url="https://resend.test/emails")
        bad = httpx.Response(422, text="invalid to", request=httpx.Request("POST", "https://resend.test/emails"))
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=bad)):
            result = await sender.send("not-an-email", "Subject", "<p>Body</p>")

        assert not result.success
        assert "422" in result.error

    @pytest.mark.asyncio
    async def test_transport_error_is_a_failed_result(self):
        sender = EmailSender(api_key="re_test")
        with patch("httpx.AsyncClient.post", AsyncMock(side_effect=httpx.ConnectError("refused"))):
            result = await sender.send("ops@acme.test", "Subject", "<p>Body</p>")

        assert not result.success
        assert result.error == "refused"
