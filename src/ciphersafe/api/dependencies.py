# CipherSafe - Service Wiring
#
# Builds the object graph once per application from an AppConfig and hangs
# it on app.state. Routes reach it through the get_container dependency, so
# tests can build an app around their own backend and config. Protected
# routes also depend on authorize.

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from ..auth import AuthGateway, CredentialStore, Identity, PasswordHasher, SessionIssuer
from ..core.config import AppConfig
from ..services import AccountService, VaultService
from ..storage import StorageBackend, create_backend


@dataclass
class ServiceContainer:
    config: AppConfig
    backend: StorageBackend
    issuer: SessionIssuer
    gateway: AuthGateway
    accounts: AccountService
    vault: VaultService


def build_container(
    config: AppConfig,
    backend: Optional[StorageBackend] = None,
    issuer: Optional[SessionIssuer] = None,
) -> ServiceContainer:
    """Wire backend -> stores -> services for one application instance."""
    backend = backend or create_backend(config)
    issuer = issuer or SessionIssuer(config.secret_key, config.token_ttl_seconds)
    gateway = AuthGateway(issuer)
    credentials = CredentialStore(
        backend,
        PasswordHasher(config.password_iterations),
        min_password_length=config.min_password_length,
    )
    return ServiceContainer(
        config=config,
        backend=backend,
        issuer=issuer,
        gateway=gateway,
        accounts=AccountService(credentials, issuer),
        vault=VaultService(gateway, backend),
    )


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the app's ServiceContainer."""
    return request.app.state.container


def authorize(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> Identity:
    """
    FastAPI dependency verifying the bearer token.

    Dependencies resolve before the request body is validated, so a caller
    without a valid token gets 401/403 even when the body is malformed.
    """
    return container.gateway.authorize(request.headers)
