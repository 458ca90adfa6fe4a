"""
Certificate Portal Service - Main Application
=============================================

FastAPI application for academic certificate issuance, verification
and revocation.

Version: 0.1.0
"""

import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from educhain.blockchain import get_ledger_client
from educhain.config import settings
from educhain.database import MongoDBClient
from educhain.errors import PortalError
from educhain.ipfs import get_pinning_client
from educhain.logging import bind_context, clear_context, get_logger, setup_logging
from educhain.models.common import ERROR_RESPONSES, ErrorResponse, HealthResponse, field_errors

from services.portal.routes import admin, certificates, institutions

# Setup logging
setup_logging(
    log_level=settings.log_level.value,
    json_logs=settings.is_production,
    service_name="certificate-portal",
)

logger = get_logger(__name__)

SERVICE_NAME = "certificate-portal"
VERSION = "0.1.0"

HTTP_ERROR_CODES = {
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager."""
    logger.info(
        "portal_starting",
        environment=settings.environment.value,
        port=settings.portal_port,
        blockchain_mode=settings.blockchain.mode.value,
        pinning_mode=settings.pinning.mode.value,
    )

    # Startup
    try:
        MongoDBClient.get_client()
        await MongoDBClient.create_indexes()
        logger.info("mongodb_connected")

        await get_ledger_client().connect()
        logger.info("ledger_connected")

        get_pinning_client()

    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("portal_shutting_down")
    await get_ledger_client().disconnect()
    await get_pinning_client().close()
    await MongoDBClient.close()


# Create FastAPI application
app = FastAPI(
    title="EduChain Certificate Portal",
    description="Blockchain-backed academic certificate issuance and verification",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins_list,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next: Any) -> Any:
    """Bind a request id to every log line of the request."""
    clear_context()
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    bind_context(request_id=request_id, path=request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# Health Check Endpoints
# ============================================================================


async def health_check() -> HealthResponse:
    """
    Service health check.

    Returns health status of the database, ledger and pinning service.
    """
    components: dict[str, dict[str, Any]] = {}

    components["database"] = await MongoDBClient.health_check()
    components["blockchain"] = await get_ledger_client().health_check()
    components["ipfs"] = await get_pinning_client().health_check()

    # Determine overall status
    all_healthy = all(
        c.get("status") == "healthy" for c in components.values()
    )

    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        service=SERVICE_NAME,
        version=VERSION,
        components=components,
    )


app.add_api_route("/health", health_check, response_model=HealthResponse, tags=["Health"])
app.add_api_route("/api/health", health_check, response_model=HealthResponse, tags=["Health"])


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": "EduChain Certificate Portal",
        "version": VERSION,
        "docs": "/docs",
    }


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(
    institutions.router,
    prefix="/api/institutions",
    tags=["Institutions"],
    responses=ERROR_RESPONSES,
)

app.include_router(
    certificates.router,
    prefix="/api/certificates",
    tags=["Certificates"],
    responses=ERROR_RESPONSES,
)

app.include_router(
    admin.router,
    prefix="/api/admin",
    tags=["Admin"],
    responses=ERROR_RESPONSES,
)


# ============================================================================
# Error Handlers
# ============================================================================


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    """Render domain errors with their status, code and failing stage."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "portal_error",
        error_code=exc.error_code,
        error=exc.message,
        stage=exc.stage.value if exc.stage else None,
        path=request.url.path,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=str(exc.detail),
            error_code=HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
        ).render(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Malformed input is a 400 with per-field details."""
    details = field_errors(exc.errors())
    logger.warning("request_validation_failed", path=request.url.path, details=details)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error="Validation failed",
            error_code="validation_failed",
            details=details,
        ).render(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    expose = settings.debug and not settings.is_production
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error=str(exc) if expose else "Internal server error",
            error_code="internal_error",
        ).render(),
    )


# ============================================================================
# Run with Uvicorn
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.portal.main:app",
        host="0.0.0.0",
        port=settings.portal_port,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
    )
