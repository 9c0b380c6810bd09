"""Notification endpoints for property managers and the periodic run."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from coi_compliance.api.v1.dependencies import entity_ref, get_notification_service
from coi_compliance.schemas.enums import NotificationStatus
from coi_compliance.schemas.notifications import EntityTargetRequest
from coi_compliance.schemas.responses import ApiResponse
from coi_compliance.services.notifications.notification_service import NotificationService
from coi_compliance.utils.responses import create_api_response

router = APIRouter()


@router.post(
    "/follow-up",
    response_model=ApiResponse,
    summary="Send a manual follow-up reminder",
    operation_id="send_follow_up",
)
async def send_follow_up(
    request: Request,
    body: EntityTargetRequest,
    notification_service: Annotated[NotificationService, Depends(get_notification_service)] = None,
) -> ApiResponse:
    result = await notification_service.send_follow_up(entity_ref(body.vendor_id, body.tenant_id))
    sent = result.notification.status == NotificationStatus.SENT
    return create_api_response(
        data=result,
        message="Follow-up sent" if sent else "Follow-up could not be delivered",
        status=sent,
        request=request,
    )


@router.post(
    "/portal-link",
    response_model=ApiResponse,
    summary="Get or create a portal upload link",
    operation_id="generate_portal_link",
)
async def generate_portal_link(
    request: Request,
    body: EntityTargetRequest,
    notification_service: Annotated[NotificationService, Depends(get_notification_service)] = None,
) -> ApiResponse:
    link = await notification_service.generate_portal_link(entity_ref(body.vendor_id, body.tenant_id))
    return create_api_response(data=link, message="Portal link ready", request=request)


@router.post(
    "/{notification_id}/cancel",
    response_model=ApiResponse,
    summary="Cancel a scheduled notification",
    operation_id="cancel_notification",
)
async def cancel_notification(
    request: Request,
    notification_id: UUID,
    notification_service: Annotated[NotificationService, Depends(get_notification_service)] = None,
) -> ApiResponse:
    notification = await notification_service.cancel_notification(notification_id)
    return create_api_response(data=notification, message="Notification cancelled", request=request)


@router.post(
    "/run",
    response_model=ApiResponse,
    summary="Re-evaluate everyone and deliver due notifications",
    operation_id="run_notification_scheduler",
)
async def run_scheduler(
    request: Request,
    notification_service: Annotated[NotificationService, Depends(get_notification_service)] = None,
) -> ApiResponse:
    summary = await notification_service.run_scheduler()
    return create_api_response(data=summary, message="Scheduler run complete", request=request)
