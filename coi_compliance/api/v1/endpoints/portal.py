"""Anonymous self-service upload portal endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from pydantic import BaseModel

from coi_compliance.api.v1.dependencies import get_portal_gatekeeper
from coi_compliance.schemas.responses import ApiResponse
from coi_compliance.services.portal.gatekeeper import PortalGatekeeper
from coi_compliance.utils.responses import create_api_response

router = APIRouter()


class PortalExtractRequest(BaseModel):
    certificate_id: UUID


@router.post(
    "/{token}/upload",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a certificate through a portal link",
    operation_id="portal_upload_certificate",
)
async def portal_upload(
    request: Request,
    token: str,
    file: UploadFile = File(..., description="Certificate PDF"),
    duplicate_confirmed: bool = Form(False),
    gatekeeper: Annotated[PortalGatekeeper, Depends(get_portal_gatekeeper)] = None,
) -> ApiResponse:
    content = await file.read()
    certificate = await gatekeeper.accept_upload(
        token, file.filename or "", content, duplicate_confirmed=duplicate_confirmed
    )
    return create_api_response(
        data=certificate,
        message="Thanks! Your certificate was received",
        request=request,
    )


@router.post(
    "/{token}/extract",
    response_model=ApiResponse,
    summary="Process a certificate uploaded through a portal link",
    operation_id="portal_extract_certificate",
)
async def portal_extract(
    request: Request,
    token: str,
    body: PortalExtractRequest,
    gatekeeper: Annotated[PortalGatekeeper, Depends(get_portal_gatekeeper)] = None,
) -> ApiResponse:
    outcome = await gatekeeper.extract(token, body.certificate_id)
    return create_api_response(
        data=outcome,
        message="Certificate processed" if outcome.succeeded else outcome.message,
        status=outcome.succeeded,
        request=request,
    )
