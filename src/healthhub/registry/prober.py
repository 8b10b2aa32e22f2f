"""Async health prober: one bounded, retried check against a single service."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable
from datetime import UTC, datetime

import httpx
from pydantic import ValidationError

from healthhub.config.models import PollerConfig
from healthhub.registry.models import HealthPayload, HealthStatus, Metrics, ServiceRecord

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def compute_error_rate(error_count: int, request_count: int) -> float:
    if request_count > 0:
        return error_count / request_count
    return 0.0


class HealthProber:
    """Checks a service's health endpoint and classifies the result.

    ``probe`` never raises for network or protocol problems; they end up in
    the returned metrics as ``dead`` or ``unhealthy``. Pass *client* to share
    a connection pool (or a mock transport); otherwise each probe opens its
    own ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        settings: PollerConfig | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings or PollerConfig()
        self._client = client
        self._clock = clock

    def health_url(self, endpoint: str) -> str:
        return endpoint.rstrip("/") + self._settings.health_path

    async def probe(self, record: ServiceRecord) -> Metrics:
        """Run one check for *record* and return its updated metrics."""
        metrics = copy.deepcopy(record.metrics)

        # pessimistic defaults
        now = self._clock()
        metrics.ready = False
        metrics.last_checked_at = now
        metrics.last_polled_at = now

        try:
            url = httpx.URL(self.health_url(record.endpoint))
        except (httpx.InvalidURL, ValueError) as exc:
            logger.warning("Service %s has an unusable endpoint %r: %s", record.id, record.endpoint, exc)
            metrics.health = HealthStatus.DEAD
            return metrics

        try:
            resp = await self._get(url)
        except (httpx.TransportError, TimeoutError) as exc:
            logger.warning("Service %s unreachable: %r", record.id, exc)
            metrics.health = HealthStatus.DEAD
            return metrics

        if resp.status_code != httpx.codes.OK:
            logger.info("Service %s returned HTTP %d", record.id, resp.status_code)
            metrics.health = HealthStatus.UNHEALTHY
            return metrics

        try:
            payload = HealthPayload.model_validate_json(resp.content)
        except ValidationError:
            logger.info("Service %s returned an unparseable health body", record.id)
            metrics.health = HealthStatus.UNHEALTHY
            return metrics

        self._apply(metrics, payload)
        return metrics

    async def probe_endpoint(self, endpoint: str, service_id: str = "adhoc") -> Metrics:
        """Probe an endpoint that is not registered anywhere."""
        return await self.probe(ServiceRecord(id=service_id, endpoint=endpoint))

    async def _get(self, url: httpx.URL) -> httpx.Response:
        if self._client is not None:
            return await self._get_with_retry(self._client, url)
        async with httpx.AsyncClient(timeout=self._settings.request_timeout) as client:
            return await self._get_with_retry(client, url)

    async def _get_with_retry(self, client: httpx.AsyncClient, url: httpx.URL) -> httpx.Response:
        """GET *url*, retrying transport failures only.

        Each attempt, body included, must finish within ``request_timeout``.
        Any response, whatever its status, ends the loop. An unsupported
        scheme is not retried. The last error is re-raised once the retry
        budget is spent.
        """
        timeout = self._settings.request_timeout
        max_attempts = self._settings.max_retries + 1
        last_error: httpx.TransportError | TimeoutError | None = None

        for attempt in range(max_attempts):
            try:
                return await asyncio.wait_for(client.get(url, timeout=timeout), timeout=timeout)
            except httpx.UnsupportedProtocol:
                raise
            except (httpx.TransportError, TimeoutError) as exc:
                last_error = exc
                logger.debug(
                    "GET %s failed (attempt %d/%d): %r",
                    url,
                    attempt + 1,
                    max_attempts,
                    exc,
                )

        assert last_error is not None
        raise last_error

    def _apply(self, metrics: Metrics, payload: HealthPayload) -> None:
        metrics.ready = True
        metrics.uptime_sec = payload.uptime_sec
        metrics.request_count = payload.request_count
        metrics.error_count = payload.error_count
        metrics.error_rate = compute_error_rate(payload.error_count, payload.request_count)
        # reported keys win, nothing is removed
        metrics.attributes.update(payload.attributes)

        if metrics.error_rate > self._settings.error_threshold:
            metrics.health = HealthStatus.DEGRADED
        else:
            metrics.health = HealthStatus.HEALTHY
