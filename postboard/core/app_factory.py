from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .container import ApplicationContainer, build_container
from .logging import configure_logging
from ..infrastructure.persistence.sqlite import SQLitePersistence
from ..infrastructure.stripe_gateway import StripeGateway
from ..presentation.api.routers import posts as posts_router
from ..presentation.api.routers import subscription as subscription_router

logger = logging.getLogger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    *,
    container: Optional[ApplicationContainer] = None,
) -> FastAPI:
    settings = settings or (container.settings if container else Settings())

    app = FastAPI(title="Postboard", lifespan=_create_lifespan(settings, container))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(subscription_router.router)
    app.include_router(posts_router.router)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        current: ApplicationContainer = app.state.container  # type: ignore[attr-defined]
        scheduler = current.reconciliation_scheduler
        report = scheduler.last_report
        return {
            "ok": True,
            "reconciliation": {
                "enabled": scheduler.enabled,
                "last_run": None
                if report is None
                else {"checked": report.checked, "updated": report.updated, "failed": report.failed},
            },
        }

    return app


def _create_lifespan(settings: Settings, injected: Optional[ApplicationContainer]):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        owned_persistence: Optional[SQLitePersistence] = None
        if injected is not None:
            container = injected
        else:
            owned_persistence = SQLitePersistence(settings.database_path)
            gateway = StripeGateway(
                settings.stripe_secret_key,
                timeout_seconds=settings.stripe_timeout_seconds,
                max_network_retries=settings.stripe_max_network_retries,
            )
            container = build_container(settings, owned_persistence, gateway)

        app.state.container = container  # type: ignore[attr-defined]
        await container.reconciliation_scheduler.start()

        try:
            yield
        finally:
            await container.reconciliation_scheduler.stop()
            if owned_persistence is not None:
                owned_persistence.close()

    return lifespan
