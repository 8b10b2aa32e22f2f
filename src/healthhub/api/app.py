"""FastAPI application factory for the healthhub collector."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from healthhub import __version__
from healthhub.api.routes import services
from healthhub.config.loader import load_config_or_default
from healthhub.config.models import HubConfig
from healthhub.registry.directory import ServiceDirectory
from healthhub.registry.models import ServiceRecord
from healthhub.registry.prober import HealthProber
from healthhub.registry.scheduler import PollingScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    scheduler: PollingScheduler = app.state.scheduler
    scheduler.start()
    try:
        yield
    finally:
        await scheduler.stop()


def create_app(config: HubConfig | None = None) -> FastAPI:
    if config is None:
        config = load_config_or_default()

    app = FastAPI(
        title="healthhub",
        version=__version__,
        description="Service registration and health metrics collector",
        lifespan=lifespan,
    )

    directory = ServiceDirectory()
    for entry in config.services:
        directory.register(ServiceRecord.from_entry(entry))
    if config.services:
        logger.info("Seeded %d service(s) from configuration", len(config.services))

    app.state.config = config
    app.state.directory = directory
    app.state.scheduler = PollingScheduler(directory, HealthProber(config.poller), config.poller)

    @app.get("/health", tags=["meta"])
    async def healthcheck() -> dict[str, Any]:
        return {"status": "ok", "services": len(directory)}

    app.include_router(services.router)

    return app


app = create_app()
