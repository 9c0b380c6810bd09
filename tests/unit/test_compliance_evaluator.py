"""Unit tests for the compliance evaluator."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from coi_compliance.schemas.compliance import (
    CertificateInput,
    CoverageInput,
    EntityInput,
    PropertyEntityInput,
    RequirementInput,
)
from coi_compliance.schemas.enums import (
    ComplianceResultStatus,
    ComplianceStatus,
    CoverageType,
    EntityComplianceStatus,
    LimitType,
    PropertyEntityType,
)
from coi_compliance.services.compliance.compliance_evaluator import dedupe_requirements, evaluate

TODAY = date(2025, 6, 15)


@pytest.fixture
def certificate() -> CertificateInput:
    return CertificateInput(id=uuid4(), uploaded_at=datetime(2025, 6, 1, tzinfo=timezone.utc))


def gl_requirement(minimum="1000000", **overrides) -> RequirementInput:
    fields = dict(
        id=uuid4(),
        coverage_type=CoverageType.GENERAL_LIABILITY,
        minimum_limit=Decimal(minimum),
        limit_type=LimitType.PER_OCCURRENCE,
    )
    fields.update(overrides)
    return RequirementInput(**fields)


def auto_requirement() -> RequirementInput:
    return RequirementInput(
        id=uuid4(),
        coverage_type=CoverageType.AUTOMOBILE_LIABILITY,
        minimum_limit=Decimal("1000000"),
        limit_type=LimitType.COMBINED_SINGLE_LIMIT,
    )


def gl_coverage(amount="1000000", expires=date(2026, 1, 1)) -> CoverageInput:
    return CoverageInput(
        id=uuid4(),
        coverage_type=CoverageType.GENERAL_LIABILITY,
        limit_amount=Decimal(amount),
        limit_type=LimitType.PER_OCCURRENCE,
        expiration_date=expires,
    )


class TestOverallStatus:

    def test_no_certificate_is_pending(self):
        result = evaluate(None, [gl_requirement()], [], [], [], today=TODAY)

        assert result.overall_status == ComplianceStatus.PENDING
        assert result.coverage_results == []

    def test_gl_met_auto_missing_is_non_compliant(self, certificate):
        gl, auto = gl_requirement(), auto_requirement()

        result = evaluate(certificate, [gl, auto], [gl_coverage()], [], [], today=TODAY)

        by_requirement = {row.coverage_requirement_id: row for row in result.coverage_results}
        assert by_requirement[gl.id].status == ComplianceResultStatus.MET
        assert by_requirement[auto.id].status == ComplianceResultStatus.MISSING
        assert result.overall_status == ComplianceStatus.NON_COMPLIANT
        assert result.gaps == [
            "Automobile Liability (Combined Single Limit) is required but not found on certificate"
        ]

    def test_expired_beats_everything(self, certificate):
        extracted = [gl_coverage(amount="2000000", expires=TODAY - timedelta(days=1))]

        result = evaluate(certificate, [gl_requirement("500000")], extracted, [], [], today=TODAY)

        assert result.coverage_results[0].status == ComplianceResultStatus.MET
        assert result.overall_status == ComplianceStatus.EXPIRED
        assert result.earliest_expiration == TODAY - timedelta(days=1)
        assert result.expired_on == TODAY - timedelta(days=1)

    def test_expiring_today_is_not_expired(self, certificate):
        result = evaluate(
            certificate, [gl_requirement()], [gl_coverage(expires=TODAY)], [], [], today=TODAY
        )

        assert result.overall_status == ComplianceStatus.EXPIRING_SOON

    def test_lookahead_window_is_inclusive(self, certificate):
        edge = [gl_coverage(expires=TODAY + timedelta(days=30))]
        beyond = [gl_coverage(expires=TODAY + timedelta(days=31))]

        assert evaluate(certificate, [gl_requirement()], edge, [], [], today=TODAY).overall_status == (
            ComplianceStatus.EXPIRING_SOON
        )
        assert evaluate(certificate, [gl_requirement()], beyond, [], [], today=TODAY).overall_status == (
            ComplianceStatus.COMPLIANT
        )

    def test_unrequested_coverage_does_not_set_the_warning_date(self, certificate):
        cyber = CoverageInput(
            id=uuid4(),
            coverage_type=CoverageType.CYBER_LIABILITY,
            limit_amount=Decimal("1000000"),
            limit_type=LimitType.AGGREGATE,
            expiration_date=TODAY + timedelta(days=10),
        )

        result = evaluate(
            certificate, [gl_requirement()], [gl_coverage(), cyber], [], [], today=TODAY
        )

        assert result.earliest_expiration == date(2026, 1, 1)
        assert result.overall_status == ComplianceStatus.COMPLIANT

    def test_lapsed_unrequested_coverage_still_expires_the_certificate(self, certificate):
        cyber = CoverageInput(
            id=uuid4(),
            coverage_type=CoverageType.CYBER_LIABILITY,
            limit_amount=Decimal("1000000"),
            limit_type=LimitType.AGGREGATE,
            expiration_date=TODAY - timedelta(days=3),
        )

        result = evaluate(
            certificate, [gl_requirement()], [gl_coverage(), cyber], [], [], today=TODAY
        )

        assert result.overall_status == ComplianceStatus.EXPIRED
        assert result.expired_on == TODAY - timedelta(days=3)
        assert result.earliest_expiration == date(2026, 1, 1)

    def test_missing_property_entity_blocks_compliance(self, certificate):
        holder = PropertyEntityInput(
            id=uuid4(),
            entity_name="Harbor View Properties LLC",
            entity_type=PropertyEntityType.CERTIFICATE_HOLDER,
        )

        result = evaluate(certificate, [gl_requirement()], [gl_coverage()], [], [holder], today=TODAY)

        assert result.entity_results[0].status == EntityComplianceStatus.MISSING
        assert result.overall_status == ComplianceStatus.NON_COMPLIANT

    def test_matched_property_entity_is_compliant(self, certificate):
        holder = PropertyEntityInput(
            id=uuid4(),
            entity_name="Harbor View Properties LLC",
            entity_type=PropertyEntityType.CERTIFICATE_HOLDER,
        )
        stated = EntityInput(
            entity_name="Harbor View Properties, L.L.C.",
            entity_type=PropertyEntityType.CERTIFICATE_HOLDER,
        )

        result = evaluate(
            certificate, [gl_requirement()], [gl_coverage()], [stated], [holder], today=TODAY
        )

        assert result.overall_status == ComplianceStatus.COMPLIANT


class TestOptionalCoverages:

    def test_absent_optional_is_not_required(self, certificate):
        optional = RequirementInput(
            id=uuid4(),
            coverage_type=CoverageType.CYBER_LIABILITY,
            is_required=False,
            minimum_limit=Decimal("1000000"),
            limit_type=LimitType.AGGREGATE,
        )

        result = evaluate(certificate, [gl_requirement(), optional], [gl_coverage()], [], [], today=TODAY)

        assert result.coverage_results[1].status == ComplianceResultStatus.NOT_REQUIRED
        assert result.overall_status == ComplianceStatus.COMPLIANT

    def test_optional_sub_check_failure_is_informational(self, certificate):
        optional = gl_requirement(is_required=False, requires_waiver_of_subrogation=True)

        result = evaluate(certificate, [optional], [gl_coverage()], [], [], today=TODAY)

        row = result.coverage_results[0]
        assert row.waiver_of_subrogation_met is False
        assert not row.blocks_compliance
        assert result.overall_status == ComplianceStatus.COMPLIANT
        assert result.optional_met_count == 1

    def test_optional_with_undeterminable_limit_is_reported_missing(self, certificate):
        optional = gl_requirement(is_required=False)
        unreadable = CoverageInput(
            id=uuid4(),
            coverage_type=CoverageType.GENERAL_LIABILITY,
            limit_type=LimitType.PER_OCCURRENCE,
            expiration_date=date(2026, 1, 1),
        )

        result = evaluate(certificate, [optional], [unreadable], [], [], today=TODAY)

        row = result.coverage_results[0]
        assert row.status == ComplianceResultStatus.MISSING
        assert row.extracted_coverage_id == unreadable.id
        assert row.gap_description == "General Liability (Per Occurrence) limit could not be determined"
        assert not row.blocks_compliance
        assert result.overall_status == ComplianceStatus.COMPLIANT

    def test_required_sub_check_failure_blocks(self, certificate):
        required = gl_requirement(requires_additional_insured=True)

        result = evaluate(certificate, [required], [gl_coverage()], [], [], today=TODAY)

        assert result.coverage_results[0].status == ComplianceResultStatus.MET
        assert result.overall_status == ComplianceStatus.NON_COMPLIANT


def test_duplicate_requirement_rows_keep_the_first():
    first = gl_requirement("1000000")
    second = gl_requirement("5000000")

    assert dedupe_requirements([first, second]) == [first]


def test_evaluation_is_deterministic(certificate):
    requirements = [gl_requirement(), auto_requirement()]
    extracted = [gl_coverage(amount="750000")]

    first = evaluate(certificate, requirements, extracted, [], [], today=TODAY)
    second = evaluate(certificate, requirements, extracted, [], [], today=TODAY)

    assert first == second
