"""Delivery configuration models."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class DeliveryConfig(BaseModel):
    """
    Immutable snapshot of the active delivery configuration.

    The settings provider builds a fresh snapshot on every call, so a
    pipeline operation keeps a consistent view even if the active
    configuration is switched while it runs.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Configuration name")
    base_url: str = Field(description="Completion backend base URL")
    api_key: str = Field(description="Completion backend API key")
    batch_threshold: int = Field(default=5, ge=1, description="Messages that force a flush")
    batch_time_window: int = Field(default=30, ge=1, description="Maximum buffering latency in seconds")
    request_timeout: int = Field(default=30, ge=1, description="Backend request timeout in seconds")
    max_retries: int = Field(default=3, ge=0, description="Retry budget per failed message")


class SaveDeliverySettingRequest(BaseModel):
    """Request model for creating or updating a delivery configuration."""

    name: str = Field(description="Configuration name", min_length=1, max_length=255)
    base_url: str = Field(description="Completion backend base URL", min_length=1)
    api_key: str = Field(description="Completion backend API key", min_length=1)
    batch_threshold: int = Field(default=5, ge=1, le=1000)
    batch_time_window: int = Field(default=30, ge=1)
    request_timeout: int = Field(default=30, ge=1)
    max_retries: int = Field(default=3, ge=0)
    activate: bool = Field(default=False, description="Make this the active configuration")


class DeliverySettingResponse(BaseModel):
    """Response model for a stored delivery configuration (api key masked)."""

    name: str
    base_url: str
    api_key: str
    batch_threshold: int
    batch_time_window: int
    request_timeout: int
    max_retries: int
    is_active: bool
    id: Optional[int] = None
