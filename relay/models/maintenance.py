"""Health and maintenance API models."""

from typing import Optional, List
from pydantic import BaseModel, Field


class HealthCheck(BaseModel):
    """Result of one health check."""

    name: str = Field(description="Check name")
    status: str = Field(description="ok, warning or error")
    detail: str = Field(description="Human readable result")
    value: Optional[int] = Field(None, description="Measured value, for queue checks")


class HealthReport(BaseModel):
    """Aggregated health of the pipeline."""

    status: str = Field(description="healthy, degraded or unhealthy")
    checks: List[HealthCheck] = Field(description="Individual checks")


class CleanupRequest(BaseModel):
    """Request model for retention cleanup."""

    days: Optional[int] = Field(None, ge=1, description="Age threshold in days, defaults to the configured retention")


class CleanupResponse(BaseModel):
    """Response model for retention cleanup."""

    days: int = Field(description="Age threshold that was applied")
    request_tasks: int = Field(description="Deleted terminal request tasks")
    failed_messages: int = Field(description="Deleted failed message records")
