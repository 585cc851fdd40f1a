"""
Authenticated eWeLink cloud session.

Sessions are created by EwelinkCloudClient.connect() and handed out by the
ConnectionCache. They are shared read-only between every node that uses the
same account, so nothing here mutates session state after construction.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict

from ewelink_nodes.cloud.errors import TRANSIENT_ERRORS, error_message
from ewelink_nodes.exceptions import CloudApiException, CommandException, TransientException

if TYPE_CHECKING:
    from ewelink_nodes.cloud.client import EwelinkCloudClient

logger = logging.getLogger(__name__)

NO_SENSOR = "Can't read sensor data from device"


class EwelinkSession:
    def __init__(
        self,
        client: "EwelinkCloudClient",
        access_token: str,
        api_key: str,
        region: str,
    ):
        self.client = client
        self.access_token = access_token
        self.api_key = api_key
        self.region = region

    def __repr__(self) -> str:
        return f"EwelinkSession(region={self.region!r}, api_key={self.api_key!r})"

    async def get_device(self, device_id: str) -> Dict[str, Any]:
        """Fetch a device record.

        The id is passed through as given, including the empty string.

        Raises:
            CommandException: If the cloud rejects the read
            TransientException: If the cloud cannot be reached or the device is offline
        """
        url = f"{self.client.settings.api_url(self.region)}/user/device/{device_id}"
        params = {"deviceid": device_id, **self.client.device_params()}
        headers = {"Authorization": f"Bearer {self.access_token}"}

        logger.debug(f"Reading device '{device_id}' (region {self.region})")
        try:
            device = await self.client.request("GET", url, params=params, headers=headers)
        except CloudApiException as e:
            raise CommandException(f"Reading device '{device_id}' failed: {e}", code=e.code) from e

        code = device.get("error")
        if code:
            message = error_message(code, device.get("msg"))
            if code in TRANSIENT_ERRORS:
                raise TransientException(f"Reading device '{device_id}' failed: {message}")
            raise CommandException(f"Reading device '{device_id}' failed: {message}", code=code)
        return device

    async def _get_params(self, device_id: str) -> Dict[str, Any]:
        device = await self.get_device(device_id)
        params = device.get("params")
        if not isinstance(params, dict):
            raise CommandException(f"Device '{device_id}' does not exist", code=404)
        return params

    async def _get_sensor_value(self, device_id: str, param: str):
        params = await self._get_params(device_id)
        value = params.get(param)
        if value is None or value == "unavailable":
            raise CommandException(f"{NO_SENSOR} '{device_id}'", code=404)
        return value

    async def get_device_current_temperature(self, device_id: str) -> Dict[str, Any]:
        temperature = await self._get_sensor_value(device_id, "currentTemperature")
        return {"status": "ok", "temperature": temperature}

    async def get_device_current_humidity(self, device_id: str) -> Dict[str, Any]:
        humidity = await self._get_sensor_value(device_id, "currentHumidity")
        return {"status": "ok", "humidity": humidity}

    async def get_device_power_state(self, device_id: str, channel: int = 1) -> Dict[str, Any]:
        """Read the switch state of a device.

        Single-channel devices report ``switch``; multi-channel devices report
        a ``switches`` list, read at ``channel`` (1-based).
        """
        params = await self._get_params(device_id)

        state = params.get("switch")
        switches = params.get("switches")
        if switches:
            if not 1 <= channel <= len(switches):
                raise CommandException(
                    f"Device '{device_id}' has no channel {channel} ({len(switches)} available)",
                    code=400,
                )
            state = switches[channel - 1].get("switch")

        if state is None:
            raise CommandException(f"Device '{device_id}' does not report a power state", code=404)

        return {"status": "ok", "state": state, "channel": channel}
