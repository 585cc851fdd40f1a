import json
import re

import httpx
import pytest
from pytest_httpx import HTTPXMock

from ewelink_nodes.cloud import EwelinkSession
from ewelink_nodes.cloud.client import EwelinkCloudClient, make_authorization_sign
from ewelink_nodes.config import Settings
from ewelink_nodes.credentials import EwelinkCredentials
from ewelink_nodes.exceptions import (
    AuthenticationException,
    CloudApiException,
    CommandException,
    ConfigurationException,
    TransientException,
)

EU_LOGIN = "https://eu-api.coolkit.cc:8080/api/user/login"
US_LOGIN = "https://us-api.coolkit.cc:8080/api/user/login"
LOGIN_OK = {"at": "access-token", "user": {"apikey": "api-key"}, "region": "eu"}


def device_url(device_id: str) -> re.Pattern:
    return re.compile(
        rf"https://eu-api\.coolkit\.cc:8080/api/user/device/{re.escape(device_id)}\?.*"
    )


class TestConnect:
    @pytest.mark.asyncio
    async def test_login_is_signed(self, cloud_client, credentials, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="POST", url=EU_LOGIN, json=LOGIN_OK)

        session = await cloud_client.connect(credentials)

        assert session.access_token == "access-token"
        assert session.api_key == "api-key"
        assert session.region == "eu"

        request = httpx_mock.get_request()
        assert request.headers["Authorization"] == (
            f"Sign {make_authorization_sign('test-app-secret', request.content)}"
        )
        body = json.loads(request.content)
        assert body["appid"] == "test-app-id"
        assert body["email"] == "user@example.com"
        assert body["password"] == "hunter2"
        assert body["version"] == 8
        assert len(body["nonce"]) == 8
        assert "phoneNumber" not in body

    @pytest.mark.asyncio
    async def test_phone_number_login(self, cloud_client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="POST", url=US_LOGIN, json={**LOGIN_OK, "region": "us"})
        credentials = EwelinkCredentials(phone_number="+15550100", password="pw")

        session = await cloud_client.connect(credentials)

        body = json.loads(httpx_mock.get_request().content)
        assert body["phoneNumber"] == "+15550100"
        assert "email" not in body
        assert session.region == "us"

    @pytest.mark.asyncio
    async def test_region_redirect(self, cloud_client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="POST", url=US_LOGIN, json={"error": 301, "region": "eu"})
        httpx_mock.add_response(method="POST", url=EU_LOGIN, json=LOGIN_OK)
        credentials = EwelinkCredentials(email="user@example.com", password="pw")

        session = await cloud_client.connect(credentials)

        assert session.region == "eu"
        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [401, 402, 406])
    async def test_rejected_login(self, cloud_client, credentials, httpx_mock: HTTPXMock, code):
        httpx_mock.add_response(method="POST", url=EU_LOGIN, json={"error": code})

        with pytest.raises(AuthenticationException) as exc_info:
            await cloud_client.connect(credentials)
        assert exc_info.value.code == code

    @pytest.mark.asyncio
    async def test_missing_app_credentials(self, clean_env, credentials):
        client = EwelinkCloudClient(Settings(app_id="", app_secret=""))
        try:
            with pytest.raises(ConfigurationException):
                await client.connect(credentials)
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_unreachable_cloud_is_transient(self, cloud_client, credentials, httpx_mock: HTTPXMock):
        httpx_mock.add_exception(httpx.ConnectError("connection refused"))

        with pytest.raises(TransientException):
            await cloud_client.connect(credentials)

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self, cloud_client, credentials, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="POST", url=EU_LOGIN, status_code=502)

        with pytest.raises(TransientException):
            await cloud_client.connect(credentials)

    @pytest.mark.asyncio
    async def test_malformed_login_response(self, cloud_client, credentials, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="POST", url=EU_LOGIN, json={"at": "token"})

        with pytest.raises(CloudApiException):
            await cloud_client.connect(credentials)


@pytest.fixture
def cloud_session(cloud_client) -> EwelinkSession:
    return EwelinkSession(cloud_client, access_token="access-token", api_key="api-key", region="eu")


class TestDeviceReads:
    @pytest.mark.asyncio
    async def test_temperature(self, cloud_session, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            method="GET",
            url=device_url("1000abc"),
            json={"deviceid": "1000abc", "params": {"currentTemperature": 21.5, "currentHumidity": 40}},
        )

        result = await cloud_session.get_device_current_temperature("1000abc")

        assert result == {"status": "ok", "temperature": 21.5}
        request = httpx_mock.get_request()
        assert request.headers["Authorization"] == "Bearer access-token"
        assert request.url.params["deviceid"] == "1000abc"
        assert request.url.params["appid"] == "test-app-id"

    @pytest.mark.asyncio
    async def test_humidity(self, cloud_session, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            method="GET",
            url=device_url("1000abc"),
            json={"params": {"currentTemperature": 21.5, "currentHumidity": 40}},
        )

        assert await cloud_session.get_device_current_humidity("1000abc") == {
            "status": "ok",
            "humidity": 40,
        }

    @pytest.mark.asyncio
    async def test_empty_device_id_is_passed_through(self, cloud_session, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="GET", url=device_url(""), json={"error": 400})

        with pytest.raises(CommandException) as exc_info:
            await cloud_session.get_device_current_temperature("")

        assert exc_info.value.code == 400
        request = httpx_mock.get_request()
        assert request.url.path == "/api/user/device/"
        assert request.url.params["deviceid"] == ""

    @pytest.mark.asyncio
    async def test_unknown_device(self, cloud_session, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="GET", url=device_url("nope"), json={"error": 404})

        with pytest.raises(CommandException, match="Device does not exist"):
            await cloud_session.get_device_current_temperature("nope")

    @pytest.mark.asyncio
    async def test_offline_device_is_transient(self, cloud_session, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="GET", url=device_url("1000abc"), json={"error": 503})

        with pytest.raises(TransientException):
            await cloud_session.get_device_current_temperature("1000abc")

    @pytest.mark.asyncio
    async def test_sensor_unavailable(self, cloud_session, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            method="GET",
            url=device_url("1000abc"),
            json={"params": {"currentTemperature": "unavailable"}},
        )

        with pytest.raises(CommandException, match="sensor"):
            await cloud_session.get_device_current_temperature("1000abc")

    @pytest.mark.asyncio
    async def test_http_client_error_becomes_command_error(self, cloud_session, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="GET", url=device_url("1000abc"), status_code=403)

        with pytest.raises(CommandException) as exc_info:
            await cloud_session.get_device_current_temperature("1000abc")
        assert exc_info.value.code == 403


class TestPowerState:
    @pytest.mark.asyncio
    async def test_single_channel(self, cloud_session, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="GET", url=device_url("1000abc"), json={"params": {"switch": "on"}})

        assert await cloud_session.get_device_power_state("1000abc") == {
            "status": "ok",
            "state": "on",
            "channel": 1,
        }

    @pytest.mark.asyncio
    async def test_multi_channel(self, cloud_session, httpx_mock: HTTPXMock):
        switches = [{"switch": "on", "outlet": 0}, {"switch": "off", "outlet": 1}]
        httpx_mock.add_response(
            method="GET", url=device_url("1000abc"), json={"params": {"switches": switches}}
        )

        result = await cloud_session.get_device_power_state("1000abc", channel=2)

        assert result == {"status": "ok", "state": "off", "channel": 2}

    @pytest.mark.asyncio
    async def test_channel_out_of_range(self, cloud_session, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            method="GET",
            url=device_url("1000abc"),
            json={"params": {"switches": [{"switch": "on", "outlet": 0}]}},
        )

        with pytest.raises(CommandException, match="no channel 3"):
            await cloud_session.get_device_power_state("1000abc", channel=3)
