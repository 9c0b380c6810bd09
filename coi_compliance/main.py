"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Tuple, Type
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from coi_compliance.api.v1.endpoints import health
from coi_compliance.api.v1.router import api_router
from coi_compliance.core.config import settings
from coi_compliance.core.database import close_database, init_database
from coi_compliance.core.exceptions import (
    APIClientError,
    AppError,
    AuthzError,
    CascadeConfirmationRequired,
    DuplicateWarning,
    InvalidStatusTransitionError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from coi_compliance.utils.logging import get_logger
from coi_compliance.utils.responses import create_error_detail

LOGGER = get_logger(__name__, level=settings.log_level)

# Most specific first; the first isinstance match wins
ERROR_STATUS: Tuple[Tuple[Type[AppError], int, str], ...] = (
    (CascadeConfirmationRequired, status.HTTP_409_CONFLICT, "Confirmation Required"),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid Request"),
    (DuplicateWarning, status.HTTP_409_CONFLICT, "Duplicate Upload"),
    (InvalidStatusTransitionError, status.HTTP_409_CONFLICT, "Invalid Status Transition"),
    (AuthzError, status.HTTP_404_NOT_FOUND, "Link Unavailable"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "Not Found"),
    (RateLimitError, status.HTTP_429_TOO_MANY_REQUESTS, "Too Many Requests"),
    (APIClientError, status.HTTP_502_BAD_GATEWAY, "Upstream Service Error"),
)


class RootResponse(BaseModel):
    """Root endpoint response payload."""

    message: str = Field(..., description="Service status message")
    version: str = Field(..., description="Running application version")
    docs: str = Field(..., description="Path to the interactive API docs")
    health: str = Field(..., description="Path to the health check endpoint")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    LOGGER.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )
    if not settings.extraction.api_key:
        LOGGER.warning("EXTRACTOR_API_KEY is missing")
    if not settings.email.resend_api_key:
        LOGGER.warning("RESEND_API_KEY is missing; emails will be logged, not sent")

    try:
        await init_database(auto_migrate=settings.db.auto_migrate)
    except Exception as e:
        LOGGER.error(f"Database initialization failed: {e}", exc_info=True)

    yield

    LOGGER.info("Shutting down application")
    try:
        await close_database()
    except Exception as e:
        LOGGER.error(
            "Error closing database",
            exc_info=True,
            extra={"error": str(e)},
        )


def _error_extra(exc: AppError) -> Dict[str, object]:
    if isinstance(exc, CascadeConfirmationRequired):
        return {"affected_count": exc.affected_count}
    if isinstance(exc, DuplicateWarning):
        return {
            "certificate_id": str(exc.certificate_id) if exc.certificate_id else None,
            "uploaded_at": exc.uploaded_at.isoformat() if exc.uploaded_at else None,
        }
    return {}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Translate application errors into RFC 7807 error details."""
    for error_type, status_code, title in ERROR_STATUS:
        if isinstance(exc, error_type):
            break
    else:
        status_code, title = status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error"
        LOGGER.error(
            f"Unhandled application error: {exc.message}",
            extra={"path": request.url.path},
        )

    error_detail = create_error_detail(
        title=title,
        status=status_code,
        detail=exc.message,
        request=request,
        extra=_error_extra(exc),
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": error_detail.model_dump(mode="json")},
    )


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Certificate of insurance compliance tracking for vendors and tenants",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_exception_handler(AppError, app_error_handler)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", str(uuid4()))
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.include_router(api_router, prefix=settings.api_v1_prefix)
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get(
    "/",
    response_model=RootResponse,
    tags=["Root"],
    summary="Root endpoint",
    description="Get basic information about the API",
    operation_id="get_public_root_metadata",
)
async def root() -> RootResponse:
    return RootResponse(
        message="Server is running",
        version=settings.app_version,
        docs="/docs",
        health="/health",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coi_compliance.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
