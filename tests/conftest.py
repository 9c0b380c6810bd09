"""Pytest configuration and shared fixtures."""

import os

# Keep tests off any real services configured in a developer .env
os.environ.setdefault("RESEND_API_KEY", "")
os.environ.setdefault("DATABASE_AUTO_MIGRATE", "false")

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from coi_compliance.main import app
from coi_compliance.schemas.enums import ProcessingStatus, UploadSource


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def mock_session() -> MagicMock:
    """AsyncSession stand-in whose commit and rollback can be awaited."""
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.execute = AsyncMock()
    return session


@pytest.fixture
def today() -> date:
    return date(2025, 6, 15)


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_pdf_content() -> bytes:
    """Sample PDF content for testing.

    Returns:
        bytes: Sample PDF content
    """
    # Minimal valid PDF header
    return b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<<\n/Type /Catalog\n/Pages 2 0 R\n>>\nendobj\n"


def make_certificate(**overrides) -> SimpleNamespace:
    """Certificate row stand-in readable by the response schemas."""
    fields = dict(
        id=uuid4(),
        vendor_id=uuid4(),
        tenant_id=None,
        file_path="vendors/x/y.pdf",
        file_name="coi.pdf",
        file_hash="a" * 64,
        upload_source=UploadSource.PM_UPLOAD.value,
        processing_status=ProcessingStatus.PROCESSING.value,
        failure_reason=None,
        overall_status=None,
        uploaded_at=datetime(2025, 6, 1, tzinfo=timezone.utc),
        reviewed_at=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def make_token(now: datetime, **overrides) -> SimpleNamespace:
    fields = dict(
        id=uuid4(),
        token="tok-" + uuid4().hex,
        vendor_id=uuid4(),
        tenant_id=None,
        expires_at=now + timedelta(days=30),
        is_active=True,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture
def certificate_factory():
    return make_certificate


@pytest.fixture
def token_factory(now):
    return lambda **overrides: make_token(now, **overrides)
