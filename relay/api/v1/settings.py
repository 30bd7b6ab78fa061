"""Delivery setting REST API routes - V1."""

from typing import List
from fastapi import APIRouter, HTTPException, Depends

from ...models.delivery import SaveDeliverySettingRequest, DeliverySettingResponse
from ...services.pipeline import RelayPipeline
from .responses import setting_response

router = APIRouter(prefix="/api/v1/settings", tags=["Settings"])

# Relay pipeline (set by main.py)
pipeline: RelayPipeline = None


def get_pipeline() -> RelayPipeline:
    """Dependency to get the relay pipeline."""
    if pipeline is None:
        raise HTTPException(status_code=500, detail="Pipeline not initialized")
    return pipeline


@router.get("", response_model=List[DeliverySettingResponse])
async def list_settings(relay: RelayPipeline = Depends(get_pipeline)):
    """List delivery configurations."""
    return [setting_response(s) for s in relay.settings_provider.list_all()]


@router.get("/active", response_model=DeliverySettingResponse)
async def get_active_setting(relay: RelayPipeline = Depends(get_pipeline)):
    """Get the active delivery configuration."""
    config = relay.settings_provider.get_active()
    return setting_response(relay.store.settings.get_by_name(config.name))


@router.post("", response_model=DeliverySettingResponse, status_code=201)
async def save_setting(
    request: SaveDeliverySettingRequest,
    relay: RelayPipeline = Depends(get_pipeline)
):
    """Create or update a delivery configuration."""
    return setting_response(relay.settings_provider.save(request))


@router.post("/{name}/activate", response_model=DeliverySettingResponse)
async def activate_setting(
    name: str,
    relay: RelayPipeline = Depends(get_pipeline)
):
    """Make a delivery configuration the active one."""
    relay.settings_provider.activate(name)
    return setting_response(relay.store.settings.get_by_name(name))
