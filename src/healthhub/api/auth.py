"""Shared-key guard for the registration endpoint.

Only ``POST /register`` mutates the directory, so it is the only route behind
the key; metrics stay readable by anyone who can reach the hub. An empty
``auth.api_key`` leaves registration open.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import HTTPException, Request

from healthhub.config.models import HubConfig

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


def registration_key_matches(config: HubConfig, presented: str) -> bool:
    expected = config.auth.api_key
    if not expected:
        return True
    return hmac.compare_digest(presented.encode(), expected.encode())


async def require_registration_key(request: Request) -> None:
    config: HubConfig = request.app.state.config
    presented = request.headers.get(API_KEY_HEADER, "")
    if registration_key_matches(config, presented):
        return
    client = request.client.host if request.client else "unknown"
    logger.warning("Rejected registration from %s: %s missing or wrong", client, API_KEY_HEADER)
    raise HTTPException(
        status_code=401,
        detail=f"Registration requires a valid {API_KEY_HEADER} header",
        headers={"WWW-Authenticate": API_KEY_HEADER},
    )
