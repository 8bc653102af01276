from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from conftest import API_KEY, RecordingPublisher
from tasbridge.gateway import CommandGateway
from tasbridge.models.command import CommandName
from tasbridge.server import create_app
from tasbridge.state.store import StateStore


@pytest_asyncio.fixture
async def client(gateway: CommandGateway) -> AsyncIterator[TestClient]:
    async with TestClient(TestServer(create_app(gateway))) as test_client:
        yield test_client


@pytest.mark.asyncio
async def test_login_success_and_failure(client: TestClient) -> None:
    ok = await client.post("/api/login", json={"apiKey": API_KEY})
    assert ok.status == 200
    assert await ok.json() == {"success": True}

    bad = await client.post("/api/login", json={"apiKey": "nope"})
    assert bad.status == 401
    assert await bad.json() == {"success": False, "error": "Invalid API key"}


@pytest.mark.asyncio
async def test_status_requires_key(client: TestClient) -> None:
    response = await client.get("/api/status")

    assert response.status == 401
    body = await response.json()
    assert body["success"] is False
    assert "power" not in body


@pytest.mark.asyncio
async def test_status_with_query_key_returns_camel_case_state(client: TestClient) -> None:
    response = await client.get("/api/status", params={"apiKey": API_KEY})

    assert response.status == 200
    body = await response.json()
    assert body["power"] == "OFF"
    assert body["online"] is False
    assert body["hsbColor"] == "0,0,0"
    assert body["restartReason"] == "N/A"
    assert body["bootCount"] == 0
    assert body["wifi"] == {}


@pytest.mark.asyncio
async def test_power_toggles_regardless_of_body(client: TestClient, publisher: RecordingPublisher) -> None:
    first = await client.post("/api/control/power", json={"apiKey": API_KEY, "power": "OFF"})
    second = await client.post("/api/control/power", json={"apiKey": API_KEY, "power": "OFF"})

    assert (await first.json())["power"] == "ON"
    assert (await second.json())["power"] == "OFF"
    assert [c.value for c in publisher.commands] == ["ON", "OFF"]


@pytest.mark.asyncio
async def test_ct_validation(client: TestClient, store: StateStore, publisher: RecordingPublisher) -> None:
    rejected = await client.post("/api/control/ct", json={"apiKey": API_KEY, "value": 501})
    assert rejected.status == 400
    assert await rejected.json() == {"success": False, "error": "Invalid CT value"}
    assert store.snapshot().ct == 153

    accepted = await client.post("/api/control/ct", json={"apiKey": API_KEY, "value": 300})
    assert accepted.status == 200
    assert (await accepted.json())["ct"] == 300
    assert publisher.commands[-1].name == CommandName.COLOR_TEMPERATURE


@pytest.mark.asyncio
async def test_dimmer_then_status(client: TestClient) -> None:
    response = await client.post("/api/control/dimmer", json={"apiKey": API_KEY, "value": 80})
    assert response.status == 200

    status = await client.get("/api/status", params={"apiKey": API_KEY})
    assert (await status.json())["dimmer"] == 80


@pytest.mark.asyncio
async def test_hsb_validation(client: TestClient) -> None:
    rejected = await client.post(
        "/api/control/hsb",
        json={"apiKey": API_KEY, "hue": 400, "saturation": 50, "dimmer": 50},
    )
    assert rejected.status == 400
    assert (await rejected.json())["error"] == "Invalid HSB values"

    accepted = await client.post(
        "/api/control/hsb",
        json={"apiKey": API_KEY, "hue": 120, "saturation": 50, "dimmer": 50},
    )
    assert accepted.status == 200
    assert (await accepted.json())["hsbColor"] == "120,50,50"


@pytest.mark.asyncio
async def test_control_with_bad_key_never_publishes(client: TestClient, publisher: RecordingPublisher) -> None:
    response = await client.post("/api/control/dimmer", json={"apiKey": "nope", "value": 50})

    assert response.status == 401
    assert publisher.commands == []


@pytest.mark.asyncio
async def test_unparseable_body_is_treated_as_empty(client: TestClient) -> None:
    response = await client.post(
        "/api/control/dimmer",
        params={"apiKey": API_KEY},
        data=b"not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status == 400
    assert (await response.json())["error"] == "Invalid dimmer value"
