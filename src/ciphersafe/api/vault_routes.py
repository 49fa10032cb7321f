# CipherSafe - Vault API
#
# GET  /api/vault  -> {success, payload|null, version}
# POST /api/vault  -> {success, message, version}
#
# Both require `Authorization: Bearer <token>`. The payload is the
# client-encrypted blob; the server never decrypts or parses it.

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field, StrictInt, StrictStr

from ..auth import Identity
from ..storage import INITIAL_VAULT_VERSION
from .dependencies import ServiceContainer, authorize, get_container

router = APIRouter(prefix="/api", tags=["vault"])


class SaveVaultRequest(BaseModel):
    # "encryptedData" / "version" are the field names older clients send.
    payload: Optional[StrictStr] = Field(
        None, validation_alias=AliasChoices("payload", "encryptedData")
    )
    expected_version: StrictInt = Field(
        INITIAL_VAULT_VERSION,
        validation_alias=AliasChoices("expectedVersion", "version"),
    )


@router.get("/vault")
async def get_vault(
    identity: Identity = Depends(authorize),
    container: ServiceContainer = Depends(get_container),
):
    """
    Fetch the caller's vault.

    A user who never saved gets payload=null and version=1, which is
    distinct from a saved empty string.
    """
    vault = await container.vault.get_vault(identity)
    return {"success": True, "payload": vault.payload, "version": vault.version}


@router.post("/vault")
async def save_vault(
    body: SaveVaultRequest,
    identity: Identity = Depends(authorize),
    container: ServiceContainer = Depends(get_container),
):
    """
    Save the caller's vault with optimistic concurrency.

    expectedVersion must match the stored version (409 otherwise); the
    response carries the new version to use for the next save.
    """
    new_version = await container.vault.save_vault(
        identity, body.payload, body.expected_version
    )
    return {"success": True, "message": "Vault saved successfully", "version": new_version}
