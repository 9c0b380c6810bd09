"""Unit tests for the portal upload gatekeeper."""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from coi_compliance.core.exceptions import (
    AuthzError,
    DuplicateWarning,
    RateLimitError,
    ValidationError,
)
from coi_compliance.schemas.certificates import ExtractionOutcome
from coi_compliance.schemas.enums import NotificationType, ProcessingStatus, UploadSource
from coi_compliance.services.certificates.certificate_service import CertificateService
from coi_compliance.services.portal.gatekeeper import (
    INVALID_LINK_MESSAGE,
    RATE_LIMIT_MESSAGE,
    PortalGatekeeper,
)


@pytest.fixture
def certificate_service(mock_session, certificate_factory) -> CertificateService:
    service = CertificateService(
        mock_session,
        storage_service=AsyncMock(),
        extractor=AsyncMock(),
        compliance_service=AsyncMock(),
    )
    service.certificate_repo = AsyncMock()
    service.certificate_repo.find_by_hash.return_value = None
    service.certificate_repo.create_certificate.return_value = certificate_factory(
        upload_source=UploadSource.PORTAL_UPLOAD.value
    )
    service.entity_repo = AsyncMock()
    service.entity_repo.get.return_value = SimpleNamespace(property_id=None, company_name="Acme")
    return service


@pytest.fixture
def gatekeeper(mock_session, certificate_service) -> PortalGatekeeper:
    gatekeeper = PortalGatekeeper(mock_session, certificate_service=certificate_service)
    gatekeeper.token_repo = AsyncMock()
    gatekeeper.token_repo.count_attempts_since.return_value = 0
    gatekeeper.entity_repo = certificate_service.entity_repo
    gatekeeper.notification_repo = AsyncMock()
    gatekeeper.property_repo = AsyncMock()
    gatekeeper.max_attempts = 5
    return gatekeeper


class TestTokenChecks:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "token_overrides",
        [None, {"is_active": False}, {"expires_at_delta": timedelta(seconds=-1)}],
        ids=["unknown", "inactive", "expired"],
    )
    async def test_every_bad_token_gets_the_same_message(
        self, gatekeeper, token_factory, now, sample_pdf_content, token_overrides
    ):
        if token_overrides is None:
            record = None
        elif "expires_at_delta" in token_overrides:
            record = token_factory(expires_at=now + token_overrides["expires_at_delta"])
        else:
            record = token_factory(**token_overrides)
        gatekeeper.token_repo.get_by_token.return_value = record

        with pytest.raises(AuthzError) as exc_info:
            await gatekeeper.accept_upload("tok", "coi.pdf", sample_pdf_content, now=now)

        assert exc_info.value.message == INVALID_LINK_MESSAGE
        gatekeeper.token_repo.record_attempt.assert_not_awaited()
        gatekeeper.certificate_service.certificate_repo.create_certificate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_token_row_is_locked_while_counting(self, gatekeeper, token_factory, now, sample_pdf_content):
        gatekeeper.token_repo.get_by_token.return_value = token_factory()

        await gatekeeper.accept_upload("tok", "coi.pdf", sample_pdf_content, now=now)

        gatekeeper.token_repo.get_by_token.assert_awaited_once_with("tok", for_update=True)


class TestRateLimit:

    @pytest.mark.asyncio
    async def test_attempt_over_the_limit_is_rejected_even_for_a_valid_file(
        self, gatekeeper, token_factory, now, sample_pdf_content
    ):
        gatekeeper.token_repo.get_by_token.return_value = token_factory()
        gatekeeper.token_repo.count_attempts_since.return_value = 5

        with pytest.raises(RateLimitError) as exc_info:
            await gatekeeper.accept_upload("tok", "coi.pdf", sample_pdf_content, now=now)

        assert exc_info.value.message == RATE_LIMIT_MESSAGE
        gatekeeper.token_repo.record_attempt.assert_not_awaited()
        gatekeeper.certificate_service.certificate_repo.create_certificate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_window_start_is_passed_to_the_count(self, gatekeeper, token_factory, now, sample_pdf_content):
        record = token_factory()
        gatekeeper.token_repo.get_by_token.return_value = record
        gatekeeper.window = timedelta(minutes=60)

        await gatekeeper.accept_upload("tok", "coi.pdf", sample_pdf_content, now=now)

        gatekeeper.token_repo.count_attempts_since.assert_awaited_once_with(
            record.id, now - timedelta(minutes=60)
        )
        gatekeeper.token_repo.record_attempt.assert_awaited_once_with(record.id, now)

    @pytest.mark.asyncio
    async def test_invalid_file_still_uses_an_attempt(self, gatekeeper, token_factory, now, mock_session):
        gatekeeper.token_repo.get_by_token.return_value = token_factory()

        with pytest.raises(ValidationError):
            await gatekeeper.accept_upload("tok", "coi.docx", b"not a pdf", now=now)

        gatekeeper.token_repo.record_attempt.assert_awaited_once()
        # The admission commit happened before the file was looked at
        mock_session.commit.assert_awaited_once()
        mock_session.rollback.assert_awaited_once()


class TestUpload:

    @pytest.mark.asyncio
    async def test_valid_upload_creates_portal_certificate(
        self, gatekeeper, token_factory, certificate_factory, now, sample_pdf_content
    ):
        record = token_factory()
        gatekeeper.token_repo.get_by_token.return_value = record
        created = certificate_factory(
            vendor_id=record.vendor_id, upload_source=UploadSource.PORTAL_UPLOAD.value
        )
        repo = gatekeeper.certificate_service.certificate_repo
        repo.create_certificate.return_value = created

        result = await gatekeeper.accept_upload("tok", "coi.pdf", sample_pdf_content, now=now)

        assert result.id == created.id
        assert result.upload_source == UploadSource.PORTAL_UPLOAD
        entity = repo.create_certificate.await_args.args[0]
        assert entity.id == record.vendor_id
        assert repo.create_certificate.await_args.kwargs["upload_source"] == UploadSource.PORTAL_UPLOAD

    @pytest.mark.asyncio
    async def test_duplicate_warns_until_confirmed(
        self, gatekeeper, token_factory, certificate_factory, now, sample_pdf_content
    ):
        gatekeeper.token_repo.get_by_token.return_value = token_factory()
        earlier = certificate_factory()
        repo = gatekeeper.certificate_service.certificate_repo
        repo.find_by_hash.return_value = earlier
        repo.create_certificate.return_value = certificate_factory()

        with pytest.raises(DuplicateWarning) as exc_info:
            await gatekeeper.accept_upload("tok", "coi.pdf", sample_pdf_content, now=now)

        assert exc_info.value.uploaded_at == earlier.uploaded_at
        assert "Jun 01, 2025" in exc_info.value.message
        repo.create_certificate.assert_not_awaited()

        await gatekeeper.accept_upload(
            "tok", "coi.pdf", sample_pdf_content, duplicate_confirmed=True, now=now
        )
        repo.create_certificate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_oversized_portal_upload_is_rejected(self, gatekeeper, token_factory, now):
        gatekeeper.token_repo.get_by_token.return_value = token_factory()
        content = b"%PDF" + b"0" * (10 * 1024 * 1024)

        with pytest.raises(ValidationError) as exc_info:
            await gatekeeper.accept_upload("tok", "coi.pdf", content, now=now)

        assert "10 MB" in exc_info.value.message


class TestExtract:

    @pytest.mark.asyncio
    async def test_certificate_of_another_entity_is_refused(
        self, gatekeeper, token_factory, certificate_factory, now
    ):
        gatekeeper.token_repo.get_by_token.return_value = token_factory()
        gatekeeper.certificate_service.certificate_repo.get_by_id.return_value = certificate_factory()

        with pytest.raises(AuthzError):
            await gatekeeper.extract("tok", uuid4(), now=now)

    @pytest.mark.asyncio
    async def test_successful_extraction_is_confirmed_and_announced(
        self, gatekeeper, token_factory, certificate_factory, now, today
    ):
        record = token_factory()
        certificate = certificate_factory(vendor_id=record.vendor_id)
        gatekeeper.token_repo.get_by_token.return_value = record
        gatekeeper.certificate_service.certificate_repo.get_by_id.return_value = certificate
        gatekeeper.certificate_service.extract_pending = AsyncMock(
            return_value=ExtractionOutcome(certificate_id=certificate.id, status=ProcessingStatus.EXTRACTED)
        )
        gatekeeper.certificate_service.confirm_extracted = AsyncMock()

        outcome = await gatekeeper.extract("tok", certificate.id, today=today, now=now)

        assert outcome.succeeded
        gatekeeper.certificate_service.confirm_extracted.assert_awaited_once_with(
            certificate.id, today, release_review_hold=False
        )
        notice = gatekeeper.notification_repo.create.await_args.kwargs
        assert notice["type"] == NotificationType.PORTAL_UPLOAD.value
        assert notice["status"] == "sent"
        assert notice["certificate_id"] == certificate.id

    @pytest.mark.asyncio
    async def test_failed_extraction_is_not_confirmed(
        self, gatekeeper, token_factory, certificate_factory, now
    ):
        record = token_factory()
        certificate = certificate_factory(vendor_id=record.vendor_id)
        gatekeeper.token_repo.get_by_token.return_value = record
        gatekeeper.certificate_service.certificate_repo.get_by_id.return_value = certificate
        gatekeeper.certificate_service.extract_pending = AsyncMock(
            return_value=ExtractionOutcome(
                certificate_id=certificate.id, status=ProcessingStatus.FAILED, message="unreadable"
            )
        )
        gatekeeper.certificate_service.confirm_extracted = AsyncMock()

        outcome = await gatekeeper.extract("tok", certificate.id, now=now)

        assert not outcome.succeeded
        gatekeeper.certificate_service.confirm_extracted.assert_not_awaited()
        gatekeeper.notification_repo.create.assert_not_awaited()
