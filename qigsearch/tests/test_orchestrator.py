"""Tests for the orchestrator client using httpx's mock transport."""

import httpx
import pytest

from qigsearch.daemon.config import OrchestratorConfig
from qigsearch.daemon.error_handling import (
    OrchestratorTimeoutError, OrchestratorUnavailableError, ServiceState
)
from qigsearch.daemon.orchestrator import OrchestratorClient


def make_client(handler) -> OrchestratorClient:
    config = OrchestratorConfig(enabled=True, url="http://orchestrator.test", timeout_s=1.0)
    return OrchestratorClient(config, transport=httpx.MockTransport(handler))


def healthy(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/pantheon/status":
        return httpx.Response(200, json={'status': 'ok'})
    if request.url.path == "/pantheon/orchestrate":
        return httpx.Response(200, json={'echo': request.read().decode()})
    if request.url.path == "/pantheon/orchestrate-batch":
        return httpx.Response(200, json={'results': [{'n': 1}, {'n': 2}]})
    return httpx.Response(404)


@pytest.mark.asyncio
async def test_calls_require_health_check():
    client = make_client(healthy)
    try:
        with pytest.raises(OrchestratorUnavailableError):
            await client.orchestrate("text")
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_orchestrate_after_health_check():
    client = make_client(healthy)
    try:
        assert await client.check_health() is True
        assert client.health.state == ServiceState.HEALTHY

        result = await client.orchestrate("hello", {'k': 'v'})
        assert '"hello"' in result['echo']

        assert await client.orchestrate_batch(["a", "b"]) == [{'n': 1}, {'n': 2}]
        assert await client.get_status() == {'status': 'ok'}
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_failed_health_check():
    client = make_client(lambda request: httpx.Response(503))
    try:
        assert await client.check_health() is False
        assert client.available is False
        assert client.health.consecutive_failures == 1
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_timeout_surfaces_as_timeout_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/pantheon/status":
            return httpx.Response(200, json={})
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(handler)
    try:
        await client.check_health()
        with pytest.raises(OrchestratorTimeoutError):
            await client.orchestrate("slow")
        assert client.health.state == ServiceState.UNHEALTHY
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_error_status_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/pantheon/status":
            return httpx.Response(200, json={})
        return httpx.Response(500)

    client = make_client(handler)
    try:
        await client.check_health()
        assert await client.orchestrate("x") is None
        assert await client.orchestrate_batch(["x"]) == []
    finally:
        await client.close()
