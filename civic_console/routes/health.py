"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from fastapi import APIRouter, HTTPException
from civic_console.config.firebase import get_db
from civic_console.core.settings import settings
from datetime import datetime, timezone


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "ml_gated_resolution": settings.ML_GATED_RESOLUTION,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/db")
async def database_health():
    """
    Database connectivity check.
    Reads at most one report to prove Firestore answers.
    """
    try:
        db = get_db()
        sample = list(db.collection("reports").limit(1).stream())

        return {
            "status": "healthy",
            "database": "firestore",
            "connected": True,
            "reports_sampled": len(sample),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(e)}"
        )
