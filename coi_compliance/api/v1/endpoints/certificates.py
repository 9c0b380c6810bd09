"""Certificate upload, extraction and review endpoints."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status

from coi_compliance.api.v1.dependencies import entity_ref, get_certificate_service
from coi_compliance.schemas.responses import ApiResponse
from coi_compliance.services.certificates.certificate_service import CertificateService
from coi_compliance.utils.logging import get_logger
from coi_compliance.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/upload",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a certificate of insurance",
    operation_id="upload_certificate",
)
async def upload_certificate(
    request: Request,
    file: UploadFile = File(..., description="Certificate PDF"),
    vendor_id: Optional[UUID] = Form(None),
    tenant_id: Optional[UUID] = Form(None),
    duplicate_confirmed: bool = Form(False),
    certificate_service: Annotated[CertificateService, Depends(get_certificate_service)] = None,
) -> ApiResponse:
    """Upload a PDF for one vendor or tenant; extraction is a separate call."""
    entity = entity_ref(vendor_id, tenant_id)
    content = await file.read()
    certificate = await certificate_service.upload(
        entity, file.filename or "", content, duplicate_confirmed=duplicate_confirmed
    )
    return create_api_response(
        data=certificate,
        message="Certificate uploaded",
        request=request,
    )


@router.post(
    "/{certificate_id}/extract",
    response_model=ApiResponse,
    summary="Extract coverages from an uploaded certificate",
    operation_id="extract_certificate",
)
async def extract_certificate(
    request: Request,
    certificate_id: UUID,
    certificate_service: Annotated[CertificateService, Depends(get_certificate_service)] = None,
) -> ApiResponse:
    outcome = await certificate_service.run_extraction(certificate_id)
    return create_api_response(
        data=outcome,
        message="Certificate extracted" if outcome.succeeded else outcome.message,
        status=outcome.succeeded,
        request=request,
    )


@router.post(
    "/{certificate_id}/confirm",
    response_model=ApiResponse,
    summary="Confirm reviewed extraction and evaluate compliance",
    operation_id="confirm_certificate",
)
async def confirm_certificate(
    request: Request,
    certificate_id: UUID,
    certificate_service: Annotated[CertificateService, Depends(get_certificate_service)] = None,
) -> ApiResponse:
    outcome = await certificate_service.confirm(certificate_id)
    return create_api_response(
        data=outcome,
        message=f"Certificate confirmed; compliance status is {outcome.compliance_status.value}",
        request=request,
    )


@router.get(
    "/{certificate_id}/document",
    response_model=ApiResponse,
    summary="Get a signed link to the certificate PDF",
    operation_id="get_certificate_document",
)
async def get_certificate_document(
    request: Request,
    certificate_id: UUID,
    certificate_service: Annotated[CertificateService, Depends(get_certificate_service)] = None,
) -> ApiResponse:
    document = await certificate_service.get_document_url(certificate_id)
    return create_api_response(data=document, message="Document link ready", request=request)
