# CipherSafe - FastAPI Backend
#
# Application factory, error rendering and the health endpoint.
# Account, vault and settings routes live in their own routers.

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..auth import SessionIssuer
from ..core.config import AppConfig, load_config
from ..core.errors import CipherSafeError, InvalidInput, StorageFailure
from ..core.logging import EventType, configure_logging, log_security_event
from ..storage import StorageBackend
from .account_routes import router as account_router
from .dependencies import ServiceContainer, build_container, get_container
from .settings_routes import router as settings_router
from .vault_routes import router as vault_router

logger = logging.getLogger(__name__)


def _error_response(exc: CipherSafeError, config: AppConfig) -> JSONResponse:
    body = exc.to_dict()
    if isinstance(exc, StorageFailure) and not config.is_production and exc.detail:
        body["details"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=body)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return InvalidInput.default_message
    loc = [str(part) for part in errors[0].get("loc", ()) if part != "body"]
    if not loc:
        return "Request body is required"
    return f"Invalid value for '{'.'.join(loc)}'"


def create_app(
    config: Optional[AppConfig] = None,
    backend: Optional[StorageBackend] = None,
    issuer: Optional[SessionIssuer] = None,
) -> FastAPI:
    """
    Build the CipherSafe API.

    Args:
        config: Server configuration (loaded from the environment if None)
        backend: Storage backend override (created from config if None)
        issuer: Session issuer override (tests inject a fake clock)

    Returns:
        FastAPI app whose lifespan initializes and closes the backend
    """
    config = config or load_config()
    configure_logging(config.log_level)
    container = build_container(config, backend=backend, issuer=issuer)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await container.backend.initialize()
        log_security_event(
            EventType.SYSTEM_START,
            "CipherSafe API started",
            backend=container.backend.name,
            environment=config.environment,
            version=__version__,
        )
        try:
            yield
        finally:
            await container.backend.close()
            log_security_event(EventType.SYSTEM_STOP, "CipherSafe API stopped")

    app = FastAPI(
        title="CipherSafe API",
        description="Authenticated storage for a single client-encrypted vault per user",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    @app.exception_handler(CipherSafeError)
    async def cipher_safe_error_handler(request: Request, exc: CipherSafeError):
        if isinstance(exc, StorageFailure):
            log_security_event(
                EventType.STORAGE_ERROR,
                "Storage failure",
                level="error",
                method=request.method,
                path=request.url.path,
                detail=exc.detail,
            )
        return _error_response(exc, config)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_response(InvalidInput(_validation_message(exc)), config)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(StorageFailure(detail=str(exc)), config)

    app.include_router(account_router)
    app.include_router(vault_router)
    app.include_router(settings_router)

    @app.get("/api/health")
    async def health(request: Request):
        """
        Report store reachability and row counts.

        500 when the backend cannot be reached.
        """
        services: ServiceContainer = get_container(request)
        try:
            stats = await services.backend.health()
        except StorageFailure as exc:
            logger.error("Health check failed: %s", exc.detail)
            body = {"status": "Error", "database": "Disconnected"}
            if not config.is_production and exc.detail:
                body["error"] = exc.detail
            return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)

        return {
            "status": "OK",
            "database": "Connected",
            "backend": services.backend.name,
            "stats": stats,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
        }

    return app


def start_api_server(
    host: str = "127.0.0.1",
    port: int = 5000,
    config: Optional[AppConfig] = None,
):
    """
    Run the API with uvicorn.

    Args:
        host: Interface to bind
        port: Port to listen on
        config: Configuration (loaded from the environment if None)
    """
    app = create_app(config)
    uvicorn.run(app, host=host, port=port, log_level="info")
