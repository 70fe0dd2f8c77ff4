"""Health check endpoint."""

from fastapi import APIRouter

from memsim import __version__
from api.routes.sessions import store

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "service": "memsim-api"
    }


@router.get("/health/ready")
async def readiness_check():
    """Readiness check endpoint."""
    return {
        "ready": True,
        "checks": {
            "sessions": len(store),
        }
    }
