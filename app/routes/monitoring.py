"""
Monitoring Routes

Liveness endpoint used by load balancers and the client application.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from app.config import settings

router = APIRouter(tags=["Monitoring"])


class HealthStatus(BaseModel):
    """Health check response model."""

    status: str
    timestamp: str
    version: str


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """
    Liveness probe endpoint.

    This endpoint should be fast and not depend on external services.
    """
    return HealthStatus(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=settings.app_version,
    )
