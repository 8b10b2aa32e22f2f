"""Thread-safe in-memory directory of registered services."""

from __future__ import annotations

import copy
import threading

from healthhub.registry.models import ServiceRecord


class InvalidRegistration(ValueError):
    """Raised when a record is missing its id or endpoint."""


class ServiceDirectory:
    """Owns the canonical copy of every ServiceRecord.

    Records go in and come out as deep copies, so a snapshot handed to a
    caller never changes when a later probe updates the stored record.
    """

    def __init__(self) -> None:
        self._records: dict[str, ServiceRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, service_id: object) -> bool:
        with self._lock:
            return service_id in self._records

    def register(self, record: ServiceRecord) -> None:
        """Insert or fully replace the record for ``record.id``."""
        if not record.id or not record.id.strip():
            raise InvalidRegistration("id is required")
        if not record.endpoint or not record.endpoint.strip():
            raise InvalidRegistration("endpoint is required")
        stored = copy.deepcopy(record)
        with self._lock:
            self._records[record.id] = stored

    def update(self, record: ServiceRecord) -> None:
        """Overwrite the stored record; re-inserts it if the id is gone."""
        stored = copy.deepcopy(record)
        with self._lock:
            self._records[record.id] = stored

    def get(self, service_id: str) -> ServiceRecord | None:
        with self._lock:
            record = self._records.get(service_id)
            return copy.deepcopy(record) if record is not None else None

    def list_snapshot(self) -> list[ServiceRecord]:
        """Return point-in-time copies of all records (order unspecified)."""
        with self._lock:
            return [copy.deepcopy(r) for r in self._records.values()]
