"""Compliance evaluator.

Runs the coverage matcher over a template's requirement lines, matches the
property's required parties against the parties stated on the certificate,
and derives one aggregate status. Pure and deterministic: ``today`` is an
input, nothing is read from the clock or the database.
"""

from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

from coi_compliance.schemas.compliance import (
    CertificateInput,
    ComplianceEvaluation,
    CoverageInput,
    CoverageResultRow,
    EntityInput,
    EntityResultRow,
    PropertyEntityInput,
    RequirementInput,
)
from coi_compliance.schemas.enums import (
    ComplianceResultStatus,
    ComplianceStatus,
    CoverageType,
    EntityComplianceStatus,
    LimitType,
)
from coi_compliance.services.compliance.coverage_matcher import find_matching_coverage, match
from coi_compliance.services.compliance.entity_matcher import match_property_entity

DEFAULT_LOOKAHEAD_DAYS = 30


def dedupe_requirements(requirements: Sequence[RequirementInput]) -> List[RequirementInput]:
    """Keep the first row per (coverage_type, limit_type)."""
    seen: set[Tuple[CoverageType, Optional[LimitType]]] = set()
    unique = []
    for requirement in requirements:
        key = (requirement.coverage_type, requirement.limit_type)
        if key in seen:
            continue
        seen.add(key)
        unique.append(requirement)
    return unique


def evaluate_coverages(
    requirements: Sequence[RequirementInput],
    extracted: Sequence[CoverageInput],
) -> List[CoverageResultRow]:
    rows = []
    for requirement in dedupe_requirements(requirements):
        if not requirement.is_required and find_matching_coverage(requirement, extracted) is None:
            rows.append(
                CoverageResultRow(
                    coverage_requirement_id=requirement.id,
                    is_required=False,
                    status=ComplianceResultStatus.NOT_REQUIRED,
                )
            )
            continue
        result = match(requirement, extracted)
        rows.append(
            CoverageResultRow(
                coverage_requirement_id=requirement.id,
                is_required=requirement.is_required,
                **result.model_dump(),
            )
        )
    return rows


def evaluate_entities(
    property_entities: Sequence[PropertyEntityInput],
    stated_entities: Sequence[EntityInput],
) -> List[EntityResultRow]:
    return [match_property_entity(pe, stated_entities) for pe in property_entities]


def earliest_expiration(
    requirements: Sequence[RequirementInput],
    extracted: Sequence[CoverageInput],
) -> Optional[date]:
    """Earliest expiration among coverages that satisfy some requirement line.

    Drives the expiring-soon window and the warnings; coverages the template
    does not ask for are left out.
    """
    matched = (find_matching_coverage(r, extracted) for r in dedupe_requirements(requirements))
    dates = [c.expiration_date for c in matched if c is not None and c.expiration_date is not None]
    return min(dates) if dates else None


def expired_on(extracted: Sequence[CoverageInput], today: date) -> Optional[date]:
    """Earliest lapsed date among all extracted coverages, requested or not."""
    dates = [
        c.expiration_date for c in extracted
        if c.expiration_date is not None and c.expiration_date < today
    ]
    return min(dates) if dates else None


def derive_overall_status(
    coverage_results: Sequence[CoverageResultRow],
    entity_results: Sequence[EntityResultRow],
    earliest: Optional[date],
    lapsed: Optional[date],
    today: date,
    lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS,
) -> ComplianceStatus:
    """Priority: expired > non_compliant > expiring_soon > compliant."""
    if lapsed is not None:
        return ComplianceStatus.EXPIRED

    if any(row.blocks_compliance for row in coverage_results):
        return ComplianceStatus.NON_COMPLIANT
    if any(row.status != EntityComplianceStatus.MET for row in entity_results):
        return ComplianceStatus.NON_COMPLIANT

    if earliest is not None and earliest <= today + timedelta(days=lookahead_days):
        return ComplianceStatus.EXPIRING_SOON

    return ComplianceStatus.COMPLIANT


def evaluate(
    certificate: Optional[CertificateInput],
    requirements: Sequence[RequirementInput],
    extracted_coverages: Sequence[CoverageInput],
    extracted_entities: Sequence[EntityInput],
    property_entities: Sequence[PropertyEntityInput],
    today: date,
    lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS,
) -> ComplianceEvaluation:
    """Evaluate an entity's latest confirmed certificate.

    Args:
        certificate: Latest confirmed certificate, or None when nothing is on file
        requirements: Requirement lines of the entity's template
        extracted_coverages: Coverages extracted from ``certificate``
        extracted_entities: Parties stated on ``certificate``
        property_entities: Parties the property requires
        today: Calendar date the evaluation is made for
        lookahead_days: Window for ``expiring_soon``

    Returns:
        ComplianceEvaluation with per-line results and the overall status
    """
    if certificate is None:
        return ComplianceEvaluation(overall_status=ComplianceStatus.PENDING)

    coverage_results = evaluate_coverages(requirements, extracted_coverages)
    entity_results = evaluate_entities(property_entities, extracted_entities)
    earliest = earliest_expiration(requirements, extracted_coverages)
    lapsed = expired_on(extracted_coverages, today)

    return ComplianceEvaluation(
        certificate_id=certificate.id,
        coverage_results=coverage_results,
        entity_results=entity_results,
        overall_status=derive_overall_status(
            coverage_results, entity_results, earliest, lapsed, today, lookahead_days
        ),
        optional_met_count=sum(
            1 for row in coverage_results
            if not row.is_required and row.status == ComplianceResultStatus.MET
        ),
        earliest_expiration=earliest,
        expired_on=lapsed,
    )
