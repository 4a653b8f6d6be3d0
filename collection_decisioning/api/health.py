"""
Health check endpoints for the Collection Decisioning Service.
"""
import time
from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from collection_decisioning.config import settings
from collection_decisioning.core.dependencies import get_collection_pipeline
from collection_decisioning.core.logging import get_logger
from collection_decisioning.services.collection_pipeline import CollectionPipeline

router = APIRouter()
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
    timestamp: datetime
    service_name: str
    drafting: List[Dict[str, Any]] = []


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    pipeline: CollectionPipeline = Depends(get_collection_pipeline),
):
    """
    Service status, version and uptime, plus each drafting tier's state.

    Reports ``degraded`` while any tier's circuit is open; recommendations
    still succeed through the ROUTINE fallback in that state.
    """
    drafting = [
        capability.get_status() for capability in pipeline.generator.capabilities.values()
    ]
    open_tiers = [
        status["tier"]
        for status in drafting
        if status.get("circuit_breaker", {}).get("state") == "open"
    ]

    response = HealthResponse(
        status="degraded" if open_tiers else "healthy",
        version=settings.version,
        uptime_seconds=time.time() - getattr(request.app.state, "start_time", time.time()),
        timestamp=datetime.utcnow(),
        service_name=settings.app_name,
        drafting=drafting,
    )

    logger.info("Health check completed", status=response.status, open_tiers=open_tiers)
    return response
