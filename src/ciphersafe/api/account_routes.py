# CipherSafe - Account API
#
# POST /api/register  -> 201 {success, message, token, user}
# POST /api/login     -> 200 {success, message, token, user}
#
# Login failures for unknown emails and wrong passwords produce the same
# status and body (rendered from InvalidCredentials by the app handler).

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, StrictStr

from .dependencies import ServiceContainer, get_container

router = APIRouter(prefix="/api", tags=["accounts"])


class CredentialsRequest(BaseModel):
    email: Optional[StrictStr] = None
    password: Optional[StrictStr] = None


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: CredentialsRequest,
    container: ServiceContainer = Depends(get_container),
):
    """
    Create an account and return a session token.

    The user row and its default settings are created atomically.
    """
    result = await container.accounts.register(request.email, request.password)
    return {
        "success": True,
        "message": "Account created successfully! Welcome to CipherSafe.",
        **result.to_dict(),
    }


@router.post("/login")
async def login(
    request: CredentialsRequest,
    container: ServiceContainer = Depends(get_container),
):
    """Verify email + password and return a fresh session token."""
    result = await container.accounts.login(request.email, request.password)
    return {"success": True, "message": "Welcome back!", **result.to_dict()}
