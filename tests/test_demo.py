"""Tests for the synthetic demo service."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from healthhub.demo import create_demo_app, register_with_hub


class StubRandom:
    """Yields a fixed sequence from random()."""

    def __init__(self, *values: float) -> None:
        self._values = list(values)

    def random(self) -> float:
        return self._values.pop(0)


class TestDemoHealth:
    def test_healthy_payload(self):
        client = TestClient(create_demo_app("svc1", 9001, error_rate=0.0, attributes={"db": "postgres"}))
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["request_count"] == 1
        assert body["error_count"] == 0
        assert body["uptime_sec"] >= 0
        assert body["attributes"] == {"service": "svc1", "version": "1.0.0", "port": "9001", "db": "postgres"}

    def test_counts_errors(self):
        app = create_demo_app("svc2", 9002, error_rate=0.3, rng=StubRandom(0.1, 0.9))
        client = TestClient(app)

        first = client.get("/health")
        assert first.status_code == 500
        assert first.text == "temporary error"

        second = client.get("/health")
        assert second.status_code == 200
        assert second.json()["request_count"] == 2
        assert second.json()["error_count"] == 1
        assert app.state.counters.error_count == 1


class TestDemoRegistration:
    def test_registers_on_startup(self):
        with patch("healthhub.demo.register_with_hub", new_callable=AsyncMock) as mock_register:
            app = create_demo_app(
                "svc1",
                9001,
                hub_url="http://hub:8080",
                poll_interval_sec=10,
                registration_attributes={"env": "dev"},
            )
            with TestClient(app):
                pass
            mock_register.assert_awaited_once_with(
                "http://hub:8080", "svc1", "http://localhost:9001", 10, {"env": "dev"}
            )

    def test_no_hub_no_registration(self):
        with patch("healthhub.demo.register_with_hub", new_callable=AsyncMock) as mock_register:
            with TestClient(create_demo_app("svc1", 9001)):
                pass
            mock_register.assert_not_awaited()

    def test_failed_registration_aborts_startup(self):
        with patch(
            "healthhub.demo.register_with_hub",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("Connection refused"),
        ):
            app = create_demo_app("svc1", 9001, hub_url="http://hub:8080")
            with pytest.raises(httpx.ConnectError):
                with TestClient(app):
                    pass


class TestRegisterWithHub:
    @pytest.mark.asyncio
    async def test_posts_registration(self):
        request = httpx.Request("POST", "http://hub:8080/register")
        with patch("healthhub.demo.httpx.AsyncClient") as mock_cls:
            mock_client = AsyncMock()
            mock_client.post.return_value = httpx.Response(201, json={"status": "registered"}, request=request)
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=False)
            mock_cls.return_value = mock_client

            await register_with_hub("http://hub:8080/", "svc1", "http://localhost:9001", 10, {"env": "dev"}, api_key="k")

            mock_client.post.assert_awaited_once_with(
                "http://hub:8080/register",
                json={
                    "id": "svc1",
                    "endpoint": "http://localhost:9001",
                    "poll_interval_sec": 10,
                    "attributes": {"env": "dev"},
                },
                headers={"X-API-Key": "k"},
            )

    @pytest.mark.asyncio
    async def test_raises_on_rejection(self):
        request = httpx.Request("POST", "http://hub:8080/register")
        with patch("healthhub.demo.httpx.AsyncClient") as mock_cls:
            mock_client = AsyncMock()
            mock_client.post.return_value = httpx.Response(401, request=request)
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=False)
            mock_cls.return_value = mock_client

            with pytest.raises(httpx.HTTPStatusError):
                await register_with_hub("http://hub:8080", "svc1", "http://localhost:9001")
