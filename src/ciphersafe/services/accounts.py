"""
Account use cases: register and login.

Both end by minting a session token for the authenticated user.
"""

import logging
from dataclasses import dataclass

from ..auth.credentials import CredentialStore
from ..auth.sessions import SessionIssuer
from ..storage.base import UserRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    user: UserRecord
    token: str
    first_login: bool

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "user": {
                "id": self.user.id,
                "email": self.user.email,
                "firstLogin": self.first_login,
            },
        }


class AccountService:
    """Composes CredentialStore and SessionIssuer."""

    def __init__(self, credentials: CredentialStore, issuer: SessionIssuer):
        self.credentials = credentials
        self.issuer = issuer

    async def register(self, email: str, password: str) -> AuthResult:
        """Create an account (user + default settings) and log it in.

        Raises:
            InvalidInput, AccountExists, StorageFailure
        """
        user = await self.credentials.register(email, password)
        token = self.issuer.mint(user.id, user.email)
        return AuthResult(user=user, token=token, first_login=True)

    async def login(self, email: str, password: str) -> AuthResult:
        """Verify credentials and mint a fresh token.

        Raises:
            InvalidInput, InvalidCredentials, StorageFailure
        """
        user = await self.credentials.verify(email, password)
        token = self.issuer.mint(user.id, user.email)
        return AuthResult(user=user, token=token, first_login=False)
