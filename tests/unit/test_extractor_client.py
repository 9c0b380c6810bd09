"""Unit tests for the extraction service client."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from coi_compliance.core.exceptions import ExtractionError
from coi_compliance.schemas.enums import CoverageType, LimitType, PropertyEntityType
from coi_compliance.services.extraction.extractor_client import (
    RAW_FORMAT_CONFIDENCE,
    ExtractorClient,
    map_coverage_type_name,
    map_raw_result,
)

URL = "http://extractor.test/extract-coi"


def response(status_code: int, body=None) -> httpx.Response:
    return httpx.Response(status_code, json=body or {}, request=httpx.Request("POST", URL))


@pytest.fixture
def client() -> ExtractorClient:
    return ExtractorClient(base_url=URL, api_key="key", timeout=5, max_retries=3, retry_delay=0)


class TestRawMapping:

    def test_acord_sections_become_coverage_rows(self):
        raw = {
            "insuranceCompany": "Hartford",
            "generalLiability": {"amount": 1000000, "aggregate": 2000000, "expirationDate": "2026-03-01"},
            "autoLiability": {"amount": 1000000, "expirationDate": "2026-03-01"},
            "workersComp": {"expirationDate": "2026-03-01"},
            "additionalCoverages": [
                {"type": "Umbrella Liability", "amount": 5000000},
                {"type": "Crime", "amount": 100000},
            ],
            "certificateHolder": "Harbor View Properties LLC",
            "certificateHolderAddress": "1 Harbor Way",
            "additionalInsuredNames": ["Summit Realty"],
        }

        result = map_raw_result(raw)

        rows = [(c.coverage_type, c.limit_type, c.limit_amount) for c in result.coverages]
        assert rows == [
            (CoverageType.GENERAL_LIABILITY, LimitType.PER_OCCURRENCE, Decimal("1000000")),
            (CoverageType.GENERAL_LIABILITY, LimitType.AGGREGATE, Decimal("2000000")),
            (CoverageType.AUTOMOBILE_LIABILITY, LimitType.COMBINED_SINGLE_LIMIT, Decimal("1000000")),
            (CoverageType.WORKERS_COMPENSATION, LimitType.STATUTORY, None),
            (CoverageType.UMBRELLA_EXCESS_LIABILITY, LimitType.PER_OCCURRENCE, Decimal("5000000")),
        ]
        assert result.coverages[0].expiration_date == date(2026, 3, 1)
        assert result.coverages[0].carrier_name == "Hartford"
        assert [e.entity_type for e in result.entities] == [
            PropertyEntityType.CERTIFICATE_HOLDER,
            PropertyEntityType.ADDITIONAL_INSURED,
        ]
        assert result.confidence == RAW_FORMAT_CONFIDENCE

    def test_coverage_heading_mapping(self):
        assert map_coverage_type_name("Excess Liability") == CoverageType.UMBRELLA_EXCESS_LIABILITY
        assert map_coverage_type_name("Professional (E&O)") == CoverageType.PROFESSIONAL_LIABILITY_EO
        assert map_coverage_type_name("Fidelity bond") is None


class TestExtract:

    @pytest.mark.asyncio
    async def test_normalized_payload(self, client, sample_pdf_content):
        body = {
            "success": True,
            "confidence": 92,
            "coverages": [
                {"coverage_type": "general_liability", "limit_amount": "1000000", "limit_type": "per_occurrence"}
            ],
            "entities": [],
        }
        with patch.object(client, "_post", AsyncMock(return_value=body)):
            result = await client.extract(sample_pdf_content, "coi.pdf")

        assert result.success
        assert result.confidence == 92
        assert result.coverages[0].coverage_type == CoverageType.GENERAL_LIABILITY

    @pytest.mark.asyncio
    async def test_reported_failure_is_returned(self, client, sample_pdf_content):
        with patch.object(client, "_post", AsyncMock(return_value={"success": False, "error": "No text"})):
            result = await client.extract(sample_pdf_content, "coi.pdf")

        assert not result.success
        assert result.error == "No text"

    @pytest.mark.asyncio
    async def test_unparseable_payload_raises(self, client, sample_pdf_content):
        body = {"success": True, "coverages": [{"coverage_type": "boat_insurance"}]}
        with patch.object(client, "_post", AsyncMock(return_value=body)):
            with pytest.raises(ExtractionError):
                await client.extract(sample_pdf_content, "coi.pdf")

    @pytest.mark.asyncio
    async def test_timeout_is_not_retried(self, client, sample_pdf_content):
        post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        with patch("httpx.AsyncClient.post", post):
            with pytest.raises(ExtractionError) as exc_info:
                await client.extract(sample_pdf_content, "coi.pdf")

        assert post.await_count == 1
        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, client, sample_pdf_content):
        post = AsyncMock(side_effect=[response(503), response(200, {"success": True, "data": {}})])
        with patch("httpx.AsyncClient.post", post):
            result = await client.extract(sample_pdf_content, "coi.pdf")

        assert post.await_count == 2
        assert result.success
        assert result.coverages == []

    @pytest.mark.asyncio
    async def test_client_error_fails_immediately(self, client, sample_pdf_content):
        post = AsyncMock(return_value=response(400, {"error": "bad pdf"}))
        with patch("httpx.AsyncClient.post", post):
            with pytest.raises(ExtractionError):
                await client.extract(sample_pdf_content, "coi.pdf")

        assert post.await_count == 1
