"""Coverage matcher: compares one requirement line to extracted coverages."""

from decimal import Decimal
from typing import Optional, Sequence

from coi_compliance.schemas.compliance import CoverageInput, CoverageMatch, RequirementInput
from coi_compliance.schemas.enums import (
    COVERAGE_LABELS,
    LIMIT_TYPE_LABELS,
    ComplianceResultStatus,
    CoverageType,
    LimitType,
)


def format_coverage(coverage_type: CoverageType, limit_type: Optional[LimitType]) -> str:
    """Human label such as "General Liability (Per Occurrence)"."""
    base = COVERAGE_LABELS.get(coverage_type, coverage_type.value)
    if limit_type is not None and limit_type != LimitType.STATUTORY:
        return f"{base} ({LIMIT_TYPE_LABELS[limit_type]})"
    return base


def format_limit(amount: Optional[Decimal]) -> str:
    if amount is None:
        return "N/A"
    return f"${amount:,.0f}"


def presence_only(requirement: RequirementInput) -> bool:
    """Statutory and limit-type-less requirements are satisfied by presence alone."""
    return requirement.limit_type is None or requirement.limit_type == LimitType.STATUTORY


def find_matching_coverage(
    requirement: RequirementInput,
    extracted: Sequence[CoverageInput],
) -> Optional[CoverageInput]:
    """Return the first extracted coverage the requirement applies to."""
    for coverage in extracted:
        if coverage.coverage_type != requirement.coverage_type:
            continue
        if presence_only(requirement) or coverage.limit_type == requirement.limit_type:
            return coverage
    return None


def match(requirement: RequirementInput, extracted: Sequence[CoverageInput]) -> CoverageMatch:
    """Decide met / not_met / missing for one requirement.

    Never returns ``not_required``: mapping an absent optional coverage is
    the evaluator's call.
    """
    label = format_coverage(requirement.coverage_type, requirement.limit_type)
    coverage = find_matching_coverage(requirement, extracted)

    if coverage is None:
        return CoverageMatch(
            status=ComplianceResultStatus.MISSING,
            gap_description=f"{label} is required but not found on certificate",
        )

    status = ComplianceResultStatus.MET
    gaps: list[str] = []

    if not presence_only(requirement) and requirement.minimum_limit is not None:
        if coverage.limit_amount is None:
            status = ComplianceResultStatus.MISSING
            gaps.append(f"{label} limit could not be determined")
        elif coverage.limit_amount < requirement.minimum_limit:
            status = ComplianceResultStatus.NOT_MET
            gaps.append(
                f"{label} limit is {format_limit(coverage.limit_amount)} "
                f"but requirement is {format_limit(requirement.minimum_limit)}"
            )

    additional_insured_met = None
    if requirement.requires_additional_insured:
        additional_insured_met = coverage.additional_insured_listed is True
        if not additional_insured_met:
            gaps.append(f"{label} requires Additional Insured endorsement but it is not listed")

    waiver_met = None
    if requirement.requires_waiver_of_subrogation:
        waiver_met = coverage.waiver_of_subrogation is True
        if not waiver_met:
            gaps.append(f"{label} requires Waiver of Subrogation but it is not listed")

    return CoverageMatch(
        status=status,
        gap_description="; ".join(gaps) or None,
        extracted_coverage_id=coverage.id,
        additional_insured_met=additional_insured_met,
        waiver_of_subrogation_met=waiver_met,
    )
