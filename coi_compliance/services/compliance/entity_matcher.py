"""Name and address matching for certificate holders and additional insureds."""

import re
from typing import Optional, Sequence, Tuple

from rapidfuzz import fuzz

from coi_compliance.schemas.compliance import EntityInput, EntityResultRow, PropertyEntityInput
from coi_compliance.schemas.enums import EntityComplianceStatus

ADDRESS_SIMILARITY_THRESHOLD = 85

_PUNCTUATION = re.compile(r"[.,;:'\"!?()#]")
_WHITESPACE = re.compile(r"\s+")
_LEGAL_SUFFIXES = re.compile(
    r"\b(limited liability company|incorporated|corporation|company|limited|"
    r"llc|inc|corp|co|lp|ltd)\b"
)


def normalize_name(name: str) -> str:
    """Lowercase, strip punctuation and legal-form suffixes."""
    cleaned = _PUNCTUATION.sub("", name.lower())
    cleaned = _LEGAL_SUFFIXES.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def normalize_address(address: str) -> str:
    cleaned = _PUNCTUATION.sub("", address.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def names_match(required: str, stated: str) -> Tuple[bool, bool]:
    """Compare a required entity name with the name stated on a certificate.

    Returns:
        (matched, exact) where exact means equal ignoring case.
    """
    if required.strip().lower() == stated.strip().lower():
        return True, True

    required_norm = normalize_name(required)
    stated_norm = normalize_name(stated)
    if not required_norm or not stated_norm:
        return False, False

    if required_norm in stated_norm or stated_norm in required_norm:
        return True, False

    # A holder block often lists several parties together; accept it when every
    # significant word of the required name appears in it.
    words = [w for w in required_norm.split(" ") if len(w) > 1]
    if len(words) >= 2 and all(w in stated_norm for w in words):
        return True, False

    return False, False


def addresses_compatible(required: Optional[str], stated: Optional[str]) -> bool:
    """Addresses only conflict when both are present and clearly differ."""
    if not required or not stated:
        return True
    required_norm = normalize_address(required)
    stated_norm = normalize_address(stated)
    if not required_norm or not stated_norm:
        return True
    if required_norm in stated_norm or stated_norm in required_norm:
        return True
    return fuzz.token_set_ratio(required_norm, stated_norm) >= ADDRESS_SIMILARITY_THRESHOLD


def match_property_entity(
    property_entity: PropertyEntityInput,
    stated_entities: Sequence[EntityInput],
) -> EntityResultRow:
    """Find the best stated entity for one required property entity."""
    best: Optional[EntityInput] = None
    best_rank: Optional[Tuple[bool, bool]] = None
    for candidate in stated_entities:
        if candidate.entity_type != property_entity.entity_type:
            continue
        matched, exact = names_match(property_entity.entity_name, candidate.entity_name)
        if not matched:
            continue
        # Prefer an agreeing address, then an exact name; first wins on ties
        rank = (
            addresses_compatible(property_entity.entity_address, candidate.entity_address),
            exact,
        )
        if best_rank is None or rank > best_rank:
            best, best_rank = candidate, rank

    if best is None:
        return EntityResultRow(
            property_entity_id=property_entity.id,
            status=EntityComplianceStatus.MISSING,
        )

    address_ok, best_exact = best_rank
    if not address_ok:
        return EntityResultRow(
            property_entity_id=property_entity.id,
            extracted_entity_id=best.id,
            status=EntityComplianceStatus.PARTIAL_MATCH,
            match_details=(
                f'Name matched "{best.entity_name}" but address "{best.entity_address}" '
                f'differs from "{property_entity.entity_address}"'
            ),
        )

    return EntityResultRow(
        property_entity_id=property_entity.id,
        extracted_entity_id=best.id,
        status=EntityComplianceStatus.MET,
        match_details=None if best_exact else f'Matched "{best.entity_name}" (name variation)',
    )
