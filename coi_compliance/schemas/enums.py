"""Enumerations shared by the models, schemas and state machines."""

from enum import Enum


class CoverageType(str, Enum):
    """Line of insurance listed on a certificate."""
    GENERAL_LIABILITY = "general_liability"
    AUTOMOBILE_LIABILITY = "automobile_liability"
    WORKERS_COMPENSATION = "workers_compensation"
    EMPLOYERS_LIABILITY = "employers_liability"
    UMBRELLA_EXCESS_LIABILITY = "umbrella_excess_liability"
    PROFESSIONAL_LIABILITY_EO = "professional_liability_eo"
    PROPERTY_INLAND_MARINE = "property_inland_marine"
    POLLUTION_LIABILITY = "pollution_liability"
    LIQUOR_LIABILITY = "liquor_liability"
    CYBER_LIABILITY = "cyber_liability"


class LimitType(str, Enum):
    """How a coverage limit is measured."""
    PER_OCCURRENCE = "per_occurrence"
    AGGREGATE = "aggregate"
    COMBINED_SINGLE_LIMIT = "combined_single_limit"
    STATUTORY = "statutory"
    PER_PERSON = "per_person"
    PER_ACCIDENT = "per_accident"


class EntityKind(str, Enum):
    """Kind of party a certificate is tracked for."""
    VENDOR = "vendor"
    TENANT = "tenant"


class PropertyEntityType(str, Enum):
    """Role a named party must play on a certificate."""
    CERTIFICATE_HOLDER = "certificate_holder"
    ADDITIONAL_INSURED = "additional_insured"


class ComplianceStatus(str, Enum):
    """Aggregate compliance status of a vendor or tenant."""
    PENDING = "pending"
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"
    UNDER_REVIEW = "under_review"  # manual PM hold, never derived


class ComplianceResultStatus(str, Enum):
    """Verdict for one coverage requirement line."""
    MET = "met"
    NOT_MET = "not_met"
    MISSING = "missing"
    NOT_REQUIRED = "not_required"


class EntityComplianceStatus(str, Enum):
    """Verdict for one required certificate holder / additional insured."""
    MET = "met"
    MISSING = "missing"
    PARTIAL_MATCH = "partial_match"


class ProcessingStatus(str, Enum):
    """Lifecycle of an uploaded certificate document."""
    PROCESSING = "processing"
    EXTRACTED = "extracted"
    REVIEW_CONFIRMED = "review_confirmed"
    FAILED = "failed"


class UploadSource(str, Enum):
    """Where a certificate came from."""
    PM_UPLOAD = "pm_upload"
    PORTAL_UPLOAD = "portal_upload"


class NotificationType(str, Enum):
    """Kind of outbound (or in-app) notice."""
    EXPIRATION_WARNING = "expiration_warning"
    GAP_NOTIFICATION = "gap_notification"
    FOLLOW_UP_REMINDER = "follow_up_reminder"
    ESCALATION = "escalation"
    PORTAL_UPLOAD = "portal_upload"


class NotificationStatus(str, Enum):
    """Delivery state of a notification."""
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TemplateCategory(str, Enum):
    VENDOR = "vendor"
    TENANT = "tenant"


COVERAGE_LABELS: dict[CoverageType, str] = {
    CoverageType.GENERAL_LIABILITY: "General Liability",
    CoverageType.AUTOMOBILE_LIABILITY: "Automobile Liability",
    CoverageType.WORKERS_COMPENSATION: "Workers' Compensation",
    CoverageType.EMPLOYERS_LIABILITY: "Employers' Liability",
    CoverageType.UMBRELLA_EXCESS_LIABILITY: "Umbrella / Excess Liability",
    CoverageType.PROFESSIONAL_LIABILITY_EO: "Professional Liability (E&O)",
    CoverageType.PROPERTY_INLAND_MARINE: "Property / Inland Marine",
    CoverageType.POLLUTION_LIABILITY: "Pollution Liability",
    CoverageType.LIQUOR_LIABILITY: "Liquor Liability",
    CoverageType.CYBER_LIABILITY: "Cyber Liability",
}

LIMIT_TYPE_LABELS: dict[LimitType, str] = {
    LimitType.PER_OCCURRENCE: "Per Occurrence",
    LimitType.AGGREGATE: "Aggregate",
    LimitType.COMBINED_SINGLE_LIMIT: "Combined Single Limit",
    LimitType.STATUTORY: "Statutory",
    LimitType.PER_PERSON: "Per Person",
    LimitType.PER_ACCIDENT: "Per Accident",
}
