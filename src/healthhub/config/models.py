"""Pydantic models for healthhub configuration and registration intake."""

from __future__ import annotations

import httpx
from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator


class ServiceEntry(BaseModel):
    """A service registration, either posted to the hub or seeded from config."""

    id: str = Field(min_length=1)
    endpoint: str = Field(min_length=1, validation_alias=AliasChoices("endpoint", "url"))
    poll_interval_sec: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("poll_interval_sec", "poll_interval_seconds"),
    )
    attributes: dict[str, str] = Field(default_factory=dict)

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, value: str) -> str:
        try:
            url = httpx.URL(value)
        except (httpx.InvalidURL, ValueError) as exc:
            raise ValueError(f"invalid endpoint {value!r}: {exc}") from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"invalid endpoint {value!r}: expected an http(s) URL with a host")
        return value


class PollerConfig(BaseModel):
    """Tunables for the polling scheduler and the health prober."""

    cycle_period: float = Field(default=10.0, gt=0)
    default_interval: float = Field(default=10.0, gt=0)
    max_workers: int = Field(default=5, ge=1)
    request_timeout: float = Field(default=2.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    error_threshold: float = Field(default=0.2, ge=0)
    health_path: str = "/health"

    @field_validator("health_path")
    @classmethod
    def _check_health_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"health_path must start with '/', got {value!r}")
        return value


class HubIdentity(BaseModel):
    """Top-level hub identity metadata."""

    name: str = "healthhub"
    version: str = "0.1.0"


class ServerConfig(BaseModel):
    """Bind address for `healthhub serve`."""

    host: str = "0.0.0.0"
    port: int = 8080


class AuthConfig(BaseModel):
    """Authentication configuration."""

    api_key: str = ""  # empty = registration open


class HubConfig(BaseModel):
    """Root configuration model for .healthhub.yaml."""

    hub: HubIdentity = Field(default_factory=HubIdentity)
    server: ServerConfig = Field(default_factory=ServerConfig)
    poller: PollerConfig = Field(default_factory=PollerConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    services: list[ServiceEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_service_ids(self) -> HubConfig:
        seen: set[str] = set()
        duplicates: list[str] = []
        for entry in self.services:
            if entry.id in seen and entry.id not in duplicates:
                duplicates.append(entry.id)
            seen.add(entry.id)
        if duplicates:
            raise ValueError(f"service id(s) listed more than once: {', '.join(duplicates)}")
        return self
