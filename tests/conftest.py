"""Shared test fixtures."""

from __future__ import annotations

import json
import os
from typing import Any, Callable

import httpx
import pytest

from nexus.config import Settings, get_settings
from nexus.device.telemetry import DeviceTelemetryProvider
from nexus.models import LocationSample, Session
from nexus.sync.api_client import ApiClient


class MemorySessionStore:
    """In-memory SessionStore."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class FakeLocation:
    """LocationProvider stand-in returning a preset fix."""

    def __init__(self, sample: LocationSample | None = None) -> None:
        self.sample = sample
        self.timeouts: list[float] = []

    async def get_fix(self, timeout: float) -> LocationSample | None:
        self.timeouts.append(timeout)
        return self.sample


class RecordingServer:
    """httpx MockTransport handler that records requests.

    ``routes`` maps endpoint name to a response, a list of responses
    (consumed in order, last one repeats) or a callable taking the request.
    """

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes: dict[str, Any] = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path.rsplit("/", 1)[-1]
        route = self.routes.get(endpoint, httpx.Response(404, json={"success": False}))
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if callable(route):
            return route(request)
        # Fresh response per request so the same route can answer repeatedly
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    def endpoints(self) -> list[str]:
        return [r.url.path.rsplit("/", 1)[-1] for r in self.requests]

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


def ok(**payload: Any) -> httpx.Response:
    return httpx.Response(200, json={"success": True, **payload})


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep real NEXUS_ environment and .env files out of tests."""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("NEXUS_"):
            monkeypatch.delenv(key)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        base_url="http://test/api/",
        data_dir=tmp_path / "data",
        sync_interval=1,
        max_backoff_interval=8,
        burst_delay=0.0,
        location_fix_timeout=0.05,
        burst_fix_timeout=0.05,
        startup_delay=0.0,
    )


@pytest.fixture
def session() -> Session:
    return Session(token="T1", deployment_code="D1", lock_flag=True)


@pytest.fixture
def server() -> RecordingServer:
    return RecordingServer()


@pytest.fixture
def make_api(settings) -> Callable[[Callable], ApiClient]:
    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> ApiClient:
        return ApiClient(settings, http_transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def api(make_api, server) -> ApiClient:
    return make_api(server)


@pytest.fixture
def telemetry() -> DeviceTelemetryProvider:
    return DeviceTelemetryProvider(
        battery_reader=lambda: 76.4,
        interface_reader=lambda: ["wlan0"],
    )


@pytest.fixture
def sample() -> LocationSample:
    return LocationSample(
        latitude=14.5995,
        longitude=120.9842,
        accuracy=8.0,
        altitude=12.0,
        speed=0.5,
        heading=90.0,
    )
