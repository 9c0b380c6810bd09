"""HTTP client for the external COI extraction service."""

import asyncio
import base64
from typing import Any, Dict, List, Optional

import httpx
from httpx import HTTPStatusError, TimeoutException
from pydantic import ValidationError as PydanticValidationError

from coi_compliance.core.config import settings
from coi_compliance.core.exceptions import ExtractionError
from coi_compliance.schemas.enums import CoverageType, LimitType, PropertyEntityType
from coi_compliance.schemas.extraction import (
    ExtractedCoverageData,
    ExtractedEntityData,
    ExtractionResult,
)
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Confidence reported for the legacy raw format, which carries none
RAW_FORMAT_CONFIDENCE = 85.0


def map_coverage_type_name(name: str) -> Optional[CoverageType]:
    """Map a free-text coverage heading to a known coverage type."""
    lower = name.lower()
    if "umbrella" in lower or "excess" in lower:
        return CoverageType.UMBRELLA_EXCESS_LIABILITY
    if "professional" in lower or "e&o" in lower:
        return CoverageType.PROFESSIONAL_LIABILITY_EO
    if "cyber" in lower:
        return CoverageType.CYBER_LIABILITY
    if "pollution" in lower:
        return CoverageType.POLLUTION_LIABILITY
    if "liquor" in lower:
        return CoverageType.LIQUOR_LIABILITY
    if "property" in lower or "inland marine" in lower:
        return CoverageType.PROPERTY_INLAND_MARINE
    return None


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ExtractionError(f"Extractor field {key} is not an object")
    return value


def map_raw_result(raw: Dict[str, Any]) -> ExtractionResult:
    """Translate the extractor's raw ACORD-style payload into coverage rows.

    The raw format has no endorsement flags, so sub-checks stay unknown.
    """
    carrier = raw.get("insuranceCompany")
    coverages: List[ExtractedCoverageData] = []

    def add(coverage_type, amount, limit_type, expiration):
        coverages.append(
            ExtractedCoverageData(
                coverage_type=coverage_type,
                carrier_name=carrier,
                limit_amount=amount,
                limit_type=limit_type,
                expiration_date=expiration,
            )
        )

    general = _section(raw, "generalLiability")
    if general.get("amount") is not None:
        add(CoverageType.GENERAL_LIABILITY, general["amount"], LimitType.PER_OCCURRENCE,
            general.get("expirationDate"))
        if general.get("aggregate") is not None:
            add(CoverageType.GENERAL_LIABILITY, general["aggregate"], LimitType.AGGREGATE,
                general.get("expirationDate"))

    auto = _section(raw, "autoLiability")
    if auto.get("amount") is not None:
        add(CoverageType.AUTOMOBILE_LIABILITY, auto["amount"], LimitType.COMBINED_SINGLE_LIMIT,
            auto.get("expirationDate"))

    workers = raw.get("workersComp")
    if workers:
        expiration = workers.get("expirationDate") if isinstance(workers, dict) else None
        add(CoverageType.WORKERS_COMPENSATION, None, LimitType.STATUTORY, expiration)

    employers = _section(raw, "employersLiability")
    if employers.get("amount") is not None:
        add(CoverageType.EMPLOYERS_LIABILITY, employers["amount"], LimitType.PER_ACCIDENT,
            employers.get("expirationDate"))

    additional = raw.get("additionalCoverages") or []
    if not isinstance(additional, list) or not all(isinstance(item, dict) for item in additional):
        raise ExtractionError("Extractor field additionalCoverages is not a list of objects")
    for extra in additional:
        coverage_type = map_coverage_type_name(str(extra.get("type") or ""))
        if coverage_type is None:
            continue
        add(coverage_type, extra.get("amount"), LimitType.PER_OCCURRENCE, extra.get("expirationDate"))

    entities: List[ExtractedEntityData] = []
    if raw.get("certificateHolder"):
        entities.append(
            ExtractedEntityData(
                entity_name=raw["certificateHolder"],
                entity_address=raw.get("certificateHolderAddress"),
                entity_type=PropertyEntityType.CERTIFICATE_HOLDER,
            )
        )
    names = raw.get("additionalInsuredNames") or []
    if not isinstance(names, list):
        raise ExtractionError("Extractor field additionalInsuredNames is not a list")
    for name in names:
        entities.append(
            ExtractedEntityData(entity_name=name, entity_type=PropertyEntityType.ADDITIONAL_INSURED)
        )

    return ExtractionResult(
        success=True,
        coverages=coverages,
        entities=entities,
        confidence=RAW_FORMAT_CONFIDENCE,
    )


class ExtractorClient:
    """Calls the extraction service with a PDF and parses its answer.

    Every transport, status or payload problem surfaces as ExtractionError;
    a well-formed ``success: false`` answer is returned as is.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[int] = None,
    ):
        self.base_url = base_url or settings.extraction.url
        self.api_key = api_key if api_key is not None else settings.extraction.api_key
        self.timeout = timeout or settings.extraction.timeout
        self.max_retries = max(1, max_retries or settings.extraction.max_retries)
        self.retry_delay = retry_delay if retry_delay is not None else settings.extraction.retry_delay
        self.logger = LOGGER

    async def extract(self, document: bytes, file_name: str) -> ExtractionResult:
        """Extract coverages and named parties from a certificate PDF.

        Args:
            document: PDF bytes
            file_name: Original file name, passed along for the service's logs

        Returns:
            ExtractionResult

        Raises:
            ExtractionError: If the service cannot be reached, times out or
                answers with something unparseable
        """
        payload = {
            "pdfBase64": base64.b64encode(document).decode("ascii"),
            "fileName": file_name,
        }
        body = await self._post(payload)
        if not isinstance(body, dict):
            raise ExtractionError("Extractor returned a non-object payload")

        if not body.get("success", False):
            return ExtractionResult(success=False, error=body.get("error") or "Extraction failed")

        try:
            if "coverages" in body:
                return ExtractionResult.model_validate(body)
            data = body.get("data") or {}
            if not isinstance(data, dict):
                raise ExtractionError("Extractor returned a non-object data field")
            return map_raw_result(data)
        except PydanticValidationError as e:
            self.logger.error(
                "Extractor returned an unparseable payload",
                extra={"file_name": file_name, "errors": e.error_count()},
            )
            raise ExtractionError("Extractor returned an invalid payload", original_error=e)
        except (TypeError, ValueError) as e:
            self.logger.error(
                "Extractor returned an unparseable payload",
                extra={"file_name": file_name, "error": str(e)},
            )
            raise ExtractionError("Extractor returned an invalid payload", original_error=e)

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(self.base_url, headers=headers, json=payload)
                    response.raise_for_status()
                    return response.json()

                except TimeoutException as e:
                    # Extraction is slow already; a timeout is final
                    self.logger.warning("Extractor timed out", extra={"url": self.base_url})
                    raise ExtractionError(
                        f"Extractor timed out after {self.timeout}s", original_error=e
                    )

                except HTTPStatusError as e:
                    status_code = e.response.status_code
                    self.logger.warning(
                        f"Extractor HTTP error (Attempt {attempt + 1}/{self.max_retries})",
                        extra={"url": self.base_url, "status_code": status_code},
                    )
                    retryable = status_code >= 500 or status_code == 429
                    if not retryable or attempt == self.max_retries - 1:
                        raise ExtractionError(
                            f"Extractor error {status_code}: {e.response.text[:500]}",
                            original_error=e,
                        )

                except (httpx.HTTPError, ValueError) as e:
                    self.logger.warning(
                        f"Extractor call failed (Attempt {attempt + 1}/{self.max_retries})",
                        extra={"url": self.base_url, "error": str(e)},
                    )
                    if attempt == self.max_retries - 1:
                        raise ExtractionError(f"Extractor call failed: {str(e)}", original_error=e)

                await asyncio.sleep(self.retry_delay * (2 ** attempt))

        raise ExtractionError(f"Extractor call failed after {self.max_retries} attempts")
