"""Property entity endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from coi_compliance.api.v1.dependencies import get_property_service
from coi_compliance.schemas.responses import ApiResponse
from coi_compliance.schemas.templates import PropertyEntitiesPayload
from coi_compliance.services.property_service import PropertyService
from coi_compliance.utils.responses import create_api_response

router = APIRouter()


@router.put(
    "/{property_id}/entities",
    response_model=ApiResponse,
    summary="Replace a property's additional insureds and certificate holder",
    operation_id="replace_property_entities",
)
async def replace_property_entities(
    request: Request,
    property_id: UUID,
    payload: PropertyEntitiesPayload,
    property_service: Annotated[PropertyService, Depends(get_property_service)] = None,
) -> ApiResponse:
    entities = await property_service.replace_property_entities(property_id, payload.entities)
    return create_api_response(data=entities, message="Property entities updated", request=request)
