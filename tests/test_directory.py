"""Tests for the service directory and record models."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta

import pytest

from healthhub.config.models import ServiceEntry
from healthhub.registry.directory import InvalidRegistration, ServiceDirectory
from healthhub.registry.models import HealthStatus, Metrics, ServiceRecord


def _record(service_id: str = "svc1", **attributes: str) -> ServiceRecord:
    return ServiceRecord.from_entry(
        ServiceEntry(id=service_id, endpoint="http://localhost:9001", attributes=attributes)
    )


# ─── Model tests ───


class TestServiceRecord:
    def test_from_entry_defaults(self):
        entry = ServiceEntry(id="svc1", endpoint="http://x", poll_interval_sec=10, attributes={"env": "dev"})
        record = ServiceRecord.from_entry(entry)
        assert record.id == "svc1"
        assert record.poll_interval_sec == 10
        assert record.metrics.ready is False
        assert record.metrics.health == HealthStatus.UNHEALTHY
        assert record.metrics.request_count == 0
        assert record.metrics.last_polled_at is None
        assert record.attributes == {"env": "dev"}

    def test_from_entry_copies_attributes(self):
        entry = ServiceEntry(id="svc1", endpoint="http://x", attributes={"env": "dev"})
        record = ServiceRecord.from_entry(entry)
        record.attributes["env"] = "prod"
        assert entry.attributes == {"env": "dev"}


class TestMetricsAgeLabel:
    def test_never_checked(self):
        assert Metrics().age_label(datetime.now(UTC)) == "never"

    def test_seconds_ago(self):
        now = datetime(2026, 1, 1, tzinfo=UTC)
        m = Metrics(last_checked_at=now - timedelta(seconds=4, milliseconds=600))
        assert m.age_label(now) == "4s ago"

    def test_clock_skew_clamped(self):
        now = datetime(2026, 1, 1, tzinfo=UTC)
        m = Metrics(last_checked_at=now + timedelta(seconds=3))
        assert m.age_label(now) == "0s ago"


# ─── ServiceDirectory tests ───


class TestServiceDirectory:
    def test_register_and_list(self):
        directory = ServiceDirectory()
        directory.register(_record("svc1"))
        directory.register(_record("svc2"))
        assert len(directory) == 2
        assert {r.id for r in directory.list_snapshot()} == {"svc1", "svc2"}
        assert "svc1" in directory
        assert "svc3" not in directory

    def test_get(self):
        directory = ServiceDirectory()
        directory.register(_record("svc1", env="dev"))
        record = directory.get("svc1")
        assert record is not None
        assert record.attributes == {"env": "dev"}
        assert directory.get("unknown") is None

    def test_rejects_empty_id(self):
        directory = ServiceDirectory()
        with pytest.raises(InvalidRegistration, match="id"):
            directory.register(ServiceRecord(id="", endpoint="http://x"))
        assert len(directory) == 0

    def test_rejects_blank_endpoint(self):
        directory = ServiceDirectory()
        with pytest.raises(InvalidRegistration, match="endpoint"):
            directory.register(ServiceRecord(id="svc1", endpoint="   "))
        assert len(directory) == 0

    def test_invalid_registration_is_value_error(self):
        assert issubclass(InvalidRegistration, ValueError)

    def test_snapshot_is_isolated_from_later_updates(self):
        directory = ServiceDirectory()
        directory.register(_record("svc1"))
        snapshot = directory.list_snapshot()

        updated = directory.get("svc1")
        assert updated is not None
        updated.metrics.ready = True
        updated.metrics.health = HealthStatus.HEALTHY
        updated.attributes["version"] = "1.0"
        directory.update(updated)

        assert snapshot[0].metrics.ready is False
        assert snapshot[0].attributes == {}
        assert directory.get("svc1").metrics.ready is True

    def test_mutating_snapshot_does_not_touch_store(self):
        directory = ServiceDirectory()
        directory.register(_record("svc1", env="dev"))
        snapshot = directory.list_snapshot()
        snapshot[0].attributes["env"] = "prod"
        snapshot[0].metrics.health = HealthStatus.DEAD
        stored = directory.get("svc1")
        assert stored.attributes == {"env": "dev"}
        assert stored.metrics.health == HealthStatus.UNHEALTHY

    def test_register_stores_a_copy(self):
        directory = ServiceDirectory()
        record = _record("svc1")
        directory.register(record)
        record.metrics.ready = True
        assert directory.get("svc1").metrics.ready is False

    def test_reregistration_replaces_record(self):
        directory = ServiceDirectory()
        directory.register(_record("svc1", a="1", b="2"))

        polled = directory.get("svc1")
        polled.metrics.ready = True
        polled.metrics.health = HealthStatus.HEALTHY
        polled.metrics.request_count = 100
        polled.metrics.last_polled_at = datetime.now(UTC)
        polled.attributes["version"] = "1.0"
        directory.update(polled)

        directory.register(_record("svc1", z="9"))
        record = directory.get("svc1")
        assert record.attributes == {"z": "9"}
        assert record.metrics.ready is False
        assert record.metrics.health == HealthStatus.UNHEALTHY
        assert record.metrics.request_count == 0
        assert record.metrics.last_polled_at is None

    def test_update_reinserts_missing_id(self):
        directory = ServiceDirectory()
        directory.update(_record("ghost"))
        assert directory.get("ghost") is not None

    def test_concurrent_registrations(self):
        directory = ServiceDirectory()

        def register_batch(prefix: str) -> None:
            for i in range(100):
                directory.register(_record(f"{prefix}-{i}"))
                directory.list_snapshot()

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(register_batch, ["a", "b", "c", "d"]))

        assert len(directory) == 400
