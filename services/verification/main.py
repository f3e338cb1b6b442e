"""
Verification Service - Main Application
========================================

FastAPI application for threshold proof verification and event proofs.

Version: 0.1.0
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cpoe.chain import get_block_source, reset_block_source
from cpoe.config import settings
from cpoe.errors import (
    ConstraintViolationError,
    NotFoundError,
    ProofSystemError,
    ReplayDetectedError,
    ResourceUnavailableError,
)
from cpoe.logging import get_logger, setup_logging
from cpoe.zk.nullifiers import get_nullifier_store, reset_nullifier_store
from cpoe.zk.verifier import get_proof_verifier, reset_proof_verifier
from services.verification.dependencies import reset_codec
from services.verification.models import ErrorResponse, HealthResponse
from services.verification.routes import events, proofs


# Setup logging
setup_logging(
    log_level=settings.log_level.value,
    json_logs=settings.is_production,
    service_name="verification",
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager."""
    logger.info(
        "verification_service_starting",
        environment=settings.environment.value,
        port=settings.verification_port,
    )

    # Startup
    verifier = get_proof_verifier()
    try:
        verifier.verification_key
        logger.info("verification_key_ready", circuit=str(verifier.circuit))
    except ResourceUnavailableError as e:
        logger.warning("verification_key_unavailable", error=e.message)

    logger.info(
        "block_source_ready",
        mode=get_block_source().mode.value,
    )

    yield

    # Shutdown
    logger.info("verification_service_shutting_down")
    await get_nullifier_store().close()
    await get_block_source().close()

    # The codec holds the closed block source
    reset_codec()
    reset_proof_verifier()
    reset_nullifier_store()
    reset_block_source()


# Create FastAPI application
app = FastAPI(
    title="CPoE Verification Service",
    description="Threshold proof verification, nullifier registry and event proofs",
    version="0.1.0",
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


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """
    Service health check.

    Returns health status of the service and its dependencies.
    """
    components: dict[str, dict[str, Any]] = {}

    components["nullifier_store"] = await get_nullifier_store().health_check()
    components["block_source"] = await get_block_source().health_check()

    response = HealthResponse(
        service="verification",
        version="0.1.0",
        components=components,
    )
    if not response.is_healthy:
        response.status = "degraded"

    return response


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": "CPoE Verification Service",
        "version": "0.1.0",
        "docs": "/docs",
    }


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(
    proofs.router,
    prefix="/api/v1/proofs",
    tags=["Threshold Proofs"],
)

app.include_router(
    events.router,
    prefix="/api/v1/events",
    tags=["Event Proofs"],
)


# ============================================================================
# Error Handlers
# ============================================================================


def _status_for(exc: ProofSystemError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ResourceUnavailableError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, ReplayDetectedError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ConstraintViolationError):
        return 422
    return status.HTTP_400_BAD_REQUEST


@app.exception_handler(ProofSystemError)
async def proof_system_exception_handler(request: Request, exc: ProofSystemError) -> Any:
    """Map engine errors to status codes."""
    status_code = _status_for(exc)
    log = logger.error if exc.retryable else logger.warning
    log(
        "proof_system_error",
        code=exc.code.value,
        error=exc.message,
        status_code=status_code,
        path=request.url.path,
    )
    body = ErrorResponse(
        error=exc.message,
        error_code=exc.code.value,
        retryable=exc.retryable,
        details=exc.details or None,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> Any:
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "status_code": exc.status_code,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> Any:
    """Handle unexpected exceptions."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal server error",
            "status_code": 500,
        },
    )


# ============================================================================
# Run with Uvicorn
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.verification.main:app",
        host="0.0.0.0",
        port=settings.verification_port,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
    )
