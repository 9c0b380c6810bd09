"""Unit tests for the coverage matcher."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from coi_compliance.schemas.compliance import CoverageInput, RequirementInput
from coi_compliance.schemas.enums import ComplianceResultStatus, CoverageType, LimitType
from coi_compliance.services.compliance.coverage_matcher import (
    format_coverage,
    format_limit,
    match,
)


def requirement(**overrides) -> RequirementInput:
    fields = dict(
        id=uuid4(),
        coverage_type=CoverageType.GENERAL_LIABILITY,
        minimum_limit=Decimal("1000000"),
        limit_type=LimitType.PER_OCCURRENCE,
    )
    fields.update(overrides)
    return RequirementInput(**fields)


def coverage(**overrides) -> CoverageInput:
    fields = dict(
        id=uuid4(),
        coverage_type=CoverageType.GENERAL_LIABILITY,
        limit_amount=Decimal("1000000"),
        limit_type=LimitType.PER_OCCURRENCE,
        expiration_date=date(2026, 1, 1),
    )
    fields.update(overrides)
    return CoverageInput(**fields)


class TestLimits:

    def test_equal_limit_is_met(self):
        extracted = coverage()
        result = match(requirement(), [extracted])

        assert result.status == ComplianceResultStatus.MET
        assert result.gap_description is None
        assert result.extracted_coverage_id == extracted.id

    def test_lower_limit_is_not_met_with_gap(self):
        result = match(requirement(), [coverage(limit_amount=Decimal("500000"))])

        assert result.status == ComplianceResultStatus.NOT_MET
        assert result.gap_description == (
            "General Liability (Per Occurrence) limit is $500,000 but requirement is $1,000,000"
        )

    def test_unknown_limit_counts_as_missing(self):
        result = match(requirement(), [coverage(limit_amount=None)])

        assert result.status == ComplianceResultStatus.MISSING
        assert "could not be determined" in result.gap_description

    def test_limit_type_must_agree(self):
        result = match(requirement(), [coverage(limit_type=LimitType.AGGREGATE)])

        assert result.status == ComplianceResultStatus.MISSING
        assert result.gap_description == (
            "General Liability (Per Occurrence) is required but not found on certificate"
        )

    def test_first_matching_coverage_wins(self):
        first = coverage(limit_amount=Decimal("500000"))
        second = coverage(limit_amount=Decimal("2000000"))

        result = match(requirement(), [first, second])

        assert result.extracted_coverage_id == first.id
        assert result.status == ComplianceResultStatus.NOT_MET


class TestStatutory:

    def test_statutory_ignores_limit(self):
        req = requirement(
            coverage_type=CoverageType.WORKERS_COMPENSATION,
            limit_type=LimitType.STATUTORY,
            minimum_limit=None,
        )
        extracted = coverage(
            coverage_type=CoverageType.WORKERS_COMPENSATION,
            limit_type=LimitType.STATUTORY,
            limit_amount=None,
        )

        assert match(req, [extracted]).status == ComplianceResultStatus.MET

    def test_statutory_matches_any_limit_type(self):
        req = requirement(
            coverage_type=CoverageType.WORKERS_COMPENSATION,
            limit_type=LimitType.STATUTORY,
            minimum_limit=None,
        )
        extracted = coverage(
            coverage_type=CoverageType.WORKERS_COMPENSATION,
            limit_type=LimitType.PER_ACCIDENT,
            limit_amount=Decimal("1"),
        )

        assert match(req, [extracted]).status == ComplianceResultStatus.MET

    def test_statutory_absent_is_missing(self):
        req = requirement(
            coverage_type=CoverageType.WORKERS_COMPENSATION,
            limit_type=LimitType.STATUTORY,
            minimum_limit=None,
        )

        result = match(req, [coverage()])

        assert result.status == ComplianceResultStatus.MISSING
        assert result.gap_description == "Workers' Compensation is required but not found on certificate"


class TestSubChecks:

    def test_missing_additional_insured_is_reported(self):
        req = requirement(requires_additional_insured=True)
        result = match(req, [coverage(additional_insured_listed=None)])

        assert result.status == ComplianceResultStatus.MET
        assert result.additional_insured_met is False
        assert not result.sub_checks_passed
        assert "Additional Insured" in result.gap_description

    def test_both_sub_checks_pass(self):
        req = requirement(requires_additional_insured=True, requires_waiver_of_subrogation=True)
        extracted = coverage(additional_insured_listed=True, waiver_of_subrogation=True)

        result = match(req, [extracted])

        assert result.additional_insured_met is True
        assert result.waiver_of_subrogation_met is True
        assert result.sub_checks_passed

    def test_unrequested_sub_checks_stay_unknown(self):
        result = match(requirement(), [coverage()])

        assert result.additional_insured_met is None
        assert result.waiver_of_subrogation_met is None


def test_formatting():
    assert format_coverage(CoverageType.AUTOMOBILE_LIABILITY, LimitType.COMBINED_SINGLE_LIMIT) == (
        "Automobile Liability (Combined Single Limit)"
    )
    assert format_coverage(CoverageType.WORKERS_COMPENSATION, LimitType.STATUTORY) == "Workers' Compensation"
    assert format_limit(None) == "N/A"
    assert format_limit(Decimal("2000000")) == "$2,000,000"
