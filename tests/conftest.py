"""Pytest configuration and shared fixtures for ewelink-nodes tests."""
import os
from unittest import mock
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from ewelink_nodes.cache import ConnectionCache
from ewelink_nodes.cloud import EwelinkCloudClient, EwelinkSession
from ewelink_nodes.config import Settings
from ewelink_nodes.credentials import EwelinkCredentials
from ewelink_nodes.runtime import FlowRuntime

VENDOR_RESULT = {"methodResult": "great"}


@pytest.fixture()
def clean_env():
    with mock.patch.dict(os.environ, clear=True):
        yield


@pytest.fixture
def test_settings(clean_env) -> Settings:
    """Settings with app credentials and no file sources."""
    return Settings(
        app_id="test-app-id",
        app_secret="test-app-secret",
        api_region="us",
        request_timeout=5.0,
    )


@pytest.fixture
def credentials() -> EwelinkCredentials:
    return EwelinkCredentials(email="user@example.com", password="hunter2", region="eu")


@pytest.fixture
def session() -> MagicMock:
    """A session whose read calls all answer VENDOR_RESULT."""
    session = MagicMock(spec=EwelinkSession)
    session.get_device_current_temperature = AsyncMock(return_value=VENDOR_RESULT)
    session.get_device_current_humidity = AsyncMock(return_value=VENDOR_RESULT)
    session.get_device_power_state = AsyncMock(return_value=VENDOR_RESULT)
    return session


@pytest.fixture
def connector(session) -> AsyncMock:
    return AsyncMock(return_value=session)


@pytest_asyncio.fixture
async def cloud_client(test_settings):
    client = EwelinkCloudClient(test_settings)
    yield client
    await client.close()


@pytest_asyncio.fixture
async def runtime(test_settings, connector):
    """Flow runtime whose cache logs in through the mocked connector."""
    runtime = FlowRuntime(
        test_settings,
        connection_cache=ConnectionCache(connector),
    )
    yield runtime
    await runtime.close()


def command_flow(device_id: str = "", node_type: str = "ewelink-temperature", **extra) -> list[dict]:
    """credentials -> command node -> capture, the shape the editor exports."""
    return [
        {
            "id": "n1",
            "type": "ewelink-credentials",
            "credentials": {
                "type": "inline",
                "email": "user@example.com",
                "password": "hunter2",
                "region": "eu",
            },
        },
        {
            "id": "n2",
            "type": node_type,
            "name": "Device 123",
            "auth": "n1",
            "deviceId": device_id,
            "wires": [["n4"]],
            **extra,
        },
        {"id": "n4", "type": "capture"},
    ]


@pytest.fixture
def make_flow():
    return command_flow
