"""Requirement template endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from coi_compliance.api.v1.dependencies import get_template_service
from coi_compliance.schemas.responses import ApiResponse
from coi_compliance.schemas.templates import TemplateUpdatePayload
from coi_compliance.services.template_service import TemplateService
from coi_compliance.utils.responses import create_api_response

router = APIRouter()


@router.put(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Update a requirement template",
    operation_id="update_template",
)
async def update_template(
    request: Request,
    template_id: UUID,
    payload: TemplateUpdatePayload,
    confirm_cascade: bool = Query(False, description="Re-evaluate entities using this template"),
    template_service: Annotated[TemplateService, Depends(get_template_service)] = None,
) -> ApiResponse:
    result = await template_service.update_template(template_id, payload, confirm_cascade)
    return create_api_response(
        data=result,
        message=f"Template updated; {result.reevaluated} entities re-evaluated",
        request=request,
    )


@router.get(
    "/{template_id}/usage",
    response_model=ApiResponse,
    summary="Count vendors and tenants using a template",
    operation_id="get_template_usage",
)
async def get_template_usage(
    request: Request,
    template_id: UUID,
    template_service: Annotated[TemplateService, Depends(get_template_service)] = None,
) -> ApiResponse:
    count = await template_service.get_usage_count(template_id)
    return create_api_response(data={"usage_count": count}, message="Template usage", request=request)


@router.post(
    "/{template_id}/duplicate",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Duplicate a template for customization",
    operation_id="duplicate_template",
)
async def duplicate_template(
    request: Request,
    template_id: UUID,
    template_service: Annotated[TemplateService, Depends(get_template_service)] = None,
) -> ApiResponse:
    template = await template_service.duplicate_template(template_id)
    return create_api_response(data=template, message="Template duplicated", request=request)


@router.delete(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Delete an unused custom template",
    operation_id="delete_template",
)
async def delete_template(
    request: Request,
    template_id: UUID,
    template_service: Annotated[TemplateService, Depends(get_template_service)] = None,
) -> ApiResponse:
    await template_service.delete_template(template_id)
    return create_api_response(data=None, message="Template deleted", request=request)
