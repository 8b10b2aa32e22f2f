"""Shared fixtures for healthhub tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Dict

import pytest
import yaml

from healthhub.config.models import HubConfig


SAMPLE_CONFIG: Dict[str, Any] = {
    "hub": {"name": "healthhub", "version": "0.1.0"},
    "server": {"host": "127.0.0.1", "port": 8080},
    "poller": {
        "cycle_period": 10.0,
        "default_interval": 10.0,
        "max_workers": 5,
        "request_timeout": 2.0,
        "max_retries": 2,
        "error_threshold": 0.2,
    },
    "services": [
        {
            "id": "svc1",
            "endpoint": "http://localhost:9001",
            "poll_interval_sec": 10,
            "attributes": {"env": "dev", "team": "core"},
        },
        {
            "id": "svc2",
            "url": "http://localhost:9002",
            "poll_interval_sec": 5,
            "attributes": {"env": "dev", "team": "payments"},
        },
    ],
}


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sample_config() -> HubConfig:
    """Return a parsed HubConfig from sample data."""
    return HubConfig(**SAMPLE_CONFIG)


@pytest.fixture()
def sample_config_dict() -> Dict[str, Any]:
    """Return raw sample config dict."""
    return dict(SAMPLE_CONFIG)


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    """Write sample config to a temp .healthhub.yaml and return the path."""
    path = tmp_path / ".healthhub.yaml"
    with path.open("w") as fh:
        yaml.dump(SAMPLE_CONFIG, fh)
    return path
