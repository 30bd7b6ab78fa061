"""Health and maintenance REST API routes - V1."""

from fastapi import APIRouter, HTTPException, Depends

from ...models.maintenance import HealthReport, CleanupRequest, CleanupResponse
from ...services.pipeline import RelayPipeline

router = APIRouter(prefix="/api/v1", tags=["Maintenance"])

# Relay pipeline (set by main.py)
pipeline: RelayPipeline = None


def get_pipeline() -> RelayPipeline:
    """Dependency to get the relay pipeline."""
    if pipeline is None:
        raise HTTPException(status_code=500, detail="Pipeline not initialized")
    return pipeline


@router.get("/health", response_model=HealthReport)
async def health_report(relay: RelayPipeline = Depends(get_pipeline)):
    """Full pipeline health report."""
    return await relay.maintenance.health()


@router.post("/maintenance/cleanup", response_model=CleanupResponse)
async def cleanup(
    request: CleanupRequest,
    relay: RelayPipeline = Depends(get_pipeline)
):
    """Delete old terminal tasks and failed message records."""
    return relay.maintenance.cleanup(request.days)
