"""Service registration and metrics query endpoints."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from healthhub.api.auth import require_registration_key
from healthhub.config.models import ServiceEntry
from healthhub.registry.directory import InvalidRegistration, ServiceDirectory
from healthhub.registry.models import ServiceRecord

router = APIRouter(tags=["services"])


def _directory(request: Request) -> ServiceDirectory:
    return request.app.state.directory


def _to_metrics_response(record: ServiceRecord, now: datetime) -> dict[str, Any]:
    m = record.metrics
    return {
        "service": record.id,
        "status": "UP" if m.ready else "DOWN",
        "health": m.health.value,
        "ready": m.ready,
        "last_checked": m.age_label(now),
        "error_rate": m.error_rate,
        "uptime_sec": m.uptime_sec,
        "request_count": m.request_count,
        "error_count": m.error_count,
        "poll_interval_sec": record.poll_interval_sec,
        "attributes": m.attributes,
    }


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_registration_key)],
)
async def register_service(request: Request, entry: ServiceEntry) -> dict[str, str]:
    try:
        _directory(request).register(ServiceRecord.from_entry(entry))
    except InvalidRegistration as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"status": "registered", "id": entry.id}


@router.get("/metrics")
async def list_metrics(request: Request) -> list[dict[str, Any]]:
    now = datetime.now(UTC)
    records = sorted(_directory(request).list_snapshot(), key=lambda r: r.id)
    return [_to_metrics_response(r, now) for r in records]


@router.get("/metrics/{service_id}")
async def service_metrics(request: Request, service_id: str) -> dict[str, Any]:
    record = _directory(request).get(service_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Unknown service: {service_id}")
    return _to_metrics_response(record, datetime.now(UTC))
