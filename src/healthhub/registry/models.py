"""Data models for registered services and their latest observed metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from healthhub.config.models import ServiceEntry


class HealthStatus(str, Enum):
    """Health classification of a probed service."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    DEAD = "dead"


@dataclass
class Metrics:
    """Latest observation for a single service.

    ``ready`` is True only when the last check got a 200 with a parseable
    body, in which case ``health`` is healthy or degraded. Otherwise
    ``health`` is unhealthy or dead.
    """

    ready: bool = False
    health: HealthStatus = HealthStatus.UNHEALTHY
    uptime_sec: int = 0
    request_count: int = 0
    error_count: int = 0
    error_rate: float = 0.0
    attributes: dict[str, str] = field(default_factory=dict)
    last_checked_at: datetime | None = None
    last_polled_at: datetime | None = None

    def age_label(self, now: datetime) -> str:
        """Render time since the last check, e.g. ``"4s ago"``."""
        if self.last_checked_at is None:
            return "never"
        age = int((now - self.last_checked_at).total_seconds())
        return f"{max(age, 0)}s ago"


@dataclass
class ServiceRecord:
    """A registered service together with its latest metrics."""

    id: str
    endpoint: str
    poll_interval_sec: int = 0
    metrics: Metrics = field(default_factory=Metrics)

    @property
    def attributes(self) -> dict[str, str]:
        return self.metrics.attributes

    @classmethod
    def from_entry(cls, entry: ServiceEntry) -> ServiceRecord:
        """Build a fresh, never-polled record from a registration."""
        return cls(
            id=entry.id,
            endpoint=entry.endpoint,
            poll_interval_sec=entry.poll_interval_sec,
            metrics=Metrics(attributes=dict(entry.attributes)),
        )


class HealthPayload(BaseModel):
    """Body a probed service returns from its health endpoint.

    Strict: strings, booleans or floats in the counters mean the body has the
    wrong shape.
    """

    model_config = ConfigDict(strict=True)

    uptime_sec: int = 0
    request_count: int = 0
    error_count: int = 0
    attributes: dict[str, str] = Field(default_factory=dict)
