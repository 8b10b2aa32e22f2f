"""Synthetic dependent service that speaks the probed-service contract.

Useful for trying a hub locally: each demo instance answers ``GET /health``
with its counters, fails a configurable share of requests with a 500, and
can register itself with a running hub on startup.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx
from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from healthhub.api.auth import API_KEY_HEADER

logger = logging.getLogger(__name__)


@dataclass
class DemoCounters:
    """Request/error counters reported by a demo service."""

    started_at: float = field(default_factory=time.monotonic)
    request_count: int = 0
    error_count: int = 0

    @property
    def uptime_sec(self) -> int:
        return int(time.monotonic() - self.started_at)


async def register_with_hub(
    hub_url: str,
    service_id: str,
    endpoint: str,
    poll_interval_sec: int = 0,
    attributes: dict[str, str] | None = None,
    api_key: str = "",
) -> None:
    """POST a registration to *hub_url*; raises on transport or HTTP errors."""
    payload = {
        "id": service_id,
        "endpoint": endpoint,
        "poll_interval_sec": poll_interval_sec,
        "attributes": attributes or {},
    }
    headers = {API_KEY_HEADER: api_key} if api_key else {}
    async with httpx.AsyncClient(timeout=5.0) as client:
        resp = await client.post(hub_url.rstrip("/") + "/register", json=payload, headers=headers)
        resp.raise_for_status()


def create_demo_app(
    name: str,
    port: int,
    error_rate: float = 0.05,
    attributes: dict[str, str] | None = None,
    hub_url: str | None = None,
    poll_interval_sec: int = 0,
    registration_attributes: dict[str, str] | None = None,
    rng: random.Random | None = None,
) -> FastAPI:
    counters = DemoCounters()
    chance = rng or random.Random()
    reported: dict[str, str] = {"service": name, "version": "1.0.0", "port": str(port)}
    reported.update(attributes or {})

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if hub_url:
            endpoint = f"http://localhost:{port}"
            try:
                await register_with_hub(
                    hub_url, name, endpoint, poll_interval_sec, registration_attributes
                )
            except httpx.HTTPError:
                logger.exception("Registration of %s with %s failed", name, hub_url)
                raise
            logger.info("Registered %s (%s) with %s", name, endpoint, hub_url)
        yield

    app = FastAPI(title=f"healthhub demo: {name}", lifespan=lifespan)
    app.state.counters = counters

    @app.get("/health")
    async def health() -> Response:
        counters.request_count += 1
        if chance.random() < error_rate:
            counters.error_count += 1
            return PlainTextResponse("temporary error", status_code=500)
        body: dict[str, Any] = {
            "uptime_sec": counters.uptime_sec,
            "request_count": counters.request_count,
            "error_count": counters.error_count,
            "attributes": reported,
        }
        return JSONResponse(body)

    return app
