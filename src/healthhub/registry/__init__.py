"""Service directory, health prober, and polling scheduler."""

from healthhub.registry.directory import InvalidRegistration, ServiceDirectory
from healthhub.registry.models import HealthStatus, Metrics, ServiceRecord
from healthhub.registry.prober import HealthProber
from healthhub.registry.scheduler import CycleReport, PollingScheduler

__all__ = [
    "CycleReport",
    "HealthProber",
    "HealthStatus",
    "InvalidRegistration",
    "Metrics",
    "PollingScheduler",
    "ServiceDirectory",
    "ServiceRecord",
]
