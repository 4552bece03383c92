"""
Health check routes.
"""
import logging
from fastapi import APIRouter, Request
from app.schemas.common import HealthResponse

router = APIRouter()
logger = logging.getLogger(__name__)


def _health_data(request: Request) -> dict:
    engine = getattr(request.app.state, "context_engine", None)
    storage = getattr(request.app.state, "context_storage", None)
    return {
        "status": "healthy",
        "live_contexts": len(engine.store) if engine is not None else 0,
        "persistence": bool(storage is not None and storage.enabled),
    }


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint at /health."""
    return HealthResponse(
        success=True,
        data=_health_data(request),
        message="OK"
    )


@router.get("/api/v1/health", response_model=HealthResponse)
async def health_check_v1(request: Request):
    """Health check endpoint at /api/v1/health (for Render)."""
    return HealthResponse(
        success=True,
        data=_health_data(request),
        message="OK"
    )


@router.get("/", response_model=HealthResponse)
async def root(request: Request):
    """Root endpoint."""
    return HealthResponse(
        success=True,
        data={"message": f"Welcome to {request.app.title}"},
        message="OK"
    )
