"""Application wiring.

Builds one instance of every collaborator and hands them to the routers;
nothing below reaches for a module-level global. Serve with
``uvicorn --factory api.app:create_app``.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request

from api.base import success_response
from api.errors import register_error_handlers, request_id_of
from api.middleware import RequestIDMiddleware
from auth.adopter import SessionAdopter
from auth.api import create_auth_router
from auth.config import QRLoginConfig
from auth.image_cache import QRImageCache
from auth.initiator import QRSessionInitiator
from auth.qr_login import QRLoginService
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.service import AuthService
from auth.session import KeyValueStore, SessionStore
from clients.memory_store import MemoryStore
from clients.user_center_client import UserCenterClient
from clients.valkey_client import ValkeyClient
from core.status import describe_status

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the HTTP layer needs, built once per process."""

    config: QRLoginConfig
    storage: KeyValueStore
    client: UserCenterClient
    store: SessionStore
    security_logger: SecurityLogger
    adopter: SessionAdopter
    qr_login: QRLoginService
    auth_service: AuthService


def build_services(
    config: QRLoginConfig,
    storage: KeyValueStore | None = None,
    client: UserCenterClient | None = None,
) -> Services:
    """Wire collaborators and restore any persisted session."""
    if storage is None:
        if config.valkey_url:
            storage = ValkeyClient(config.valkey_url, prefix=config.storage_prefix)
        else:
            storage = MemoryStore()
    client = client or UserCenterClient(config.user_center_url)

    security_logger = SecurityLogger()
    store = SessionStore(storage)
    restored = store.restore()
    if restored is not None:
        security_logger.log(SecurityEvent.SESSION_RESTORED, user_id=restored.user.id)

    adopter = SessionAdopter(store, security_logger)
    initiator = QRSessionInitiator(
        client, QRImageCache(storage, config.image_cache_ttl_seconds), config
    )

    return Services(
        config=config,
        storage=storage,
        client=client,
        store=store,
        security_logger=security_logger,
        adopter=adopter,
        qr_login=QRLoginService(initiator, client, adopter, store, config, security_logger),
        auth_service=AuthService(client, adopter, store, config, security_logger),
    )


def create_app(config: QRLoginConfig | None = None, services: Services | None = None) -> FastAPI:
    """Create the FastAPI app. Reads .env and ALMOND_* variables when no config is given."""
    owns_storage = services is None
    if services is None:
        if config is None:
            load_dotenv(Path.cwd() / ".env")
            config = QRLoginConfig.from_env()
        services = build_services(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        services.qr_login.cancel()
        services.client.close()
        if owns_storage:
            services.storage.close()
        logger.info("Sign-in services stopped")

    app = FastAPI(title="Almond sign-in", lifespan=lifespan)
    app.state.services = services
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(
        create_auth_router(services.qr_login, services.auth_service, services.store),
        prefix="/auth",
    )

    @app.get("/health")
    def health(request: Request):
        return success_response(
            {"ok": True, "storage": services.storage.ping()}, request_id=request_id_of(request)
        )

    @app.get("/almond/status/{status}")
    def almond_status(request: Request, status: str):
        """Card label and progress bar for an almond status."""
        display = describe_status(status)
        return success_response(
            {
                "status": status,
                "label": display.label,
                "progressPercent": display.progress_percent,
                "known": display.known,
            },
            request_id=request_id_of(request),
        )

    logger.info(f"Sign-in app created (user center: {services.config.user_center_url})")
    return app
