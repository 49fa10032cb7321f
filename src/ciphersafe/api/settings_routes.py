# CipherSafe - Settings API
#
# GET /api/settings -> {success, settings: {theme, autoLock}}
# PUT /api/settings -> same shape, after applying the given fields

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field, StrictInt, StrictStr

from ..auth import Identity
from .dependencies import ServiceContainer, authorize, get_container

router = APIRouter(prefix="/api", tags=["settings"])


class UpdateSettingsRequest(BaseModel):
    theme: Optional[StrictStr] = None
    auto_lock: Optional[StrictInt] = Field(
        None, validation_alias=AliasChoices("autoLock", "auto_lock")
    )


@router.get("/settings")
async def get_settings(
    identity: Identity = Depends(authorize),
    container: ServiceContainer = Depends(get_container),
):
    """Return the caller's preferences (defaults if none are stored)."""
    settings = await container.vault.get_settings(identity)
    return {"success": True, "settings": settings.to_dict()}


@router.put("/settings")
async def update_settings(
    body: UpdateSettingsRequest,
    identity: Identity = Depends(authorize),
    container: ServiceContainer = Depends(get_container),
):
    """Update theme and/or auto-lock minutes."""
    settings = await container.vault.update_settings(
        identity, theme=body.theme, auto_lock=body.auto_lock
    )
    return {"success": True, "settings": settings.to_dict()}
