"""Coverage matching and compliance evaluation."""

from coi_compliance.services.compliance.compliance_evaluator import evaluate
from coi_compliance.services.compliance.coverage_matcher import match

__all__ = ["evaluate", "match"]
