from fastapi import APIRouter

from coi_compliance.api.v1.endpoints import (
    certificates,
    notifications,
    portal,
    properties,
    templates,
)

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(certificates.router, prefix="/certificates", tags=["Certificates"])
api_router.include_router(portal.router, prefix="/portal", tags=["Portal"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(templates.router, prefix="/templates", tags=["Templates"])
api_router.include_router(properties.router, prefix="/properties", tags=["Properties"])

__all__ = ["api_router"]
