"""eWeLink cloud API client."""

import base64
import hashlib
import hmac
import json
import logging
import secrets
import string
import time
from json import JSONDecodeError
from typing import Any, Dict, Optional

import httpx

from ewelink_nodes.cloud.errors import (
    AUTHENTICATION_ERRORS,
    REGION_REDIRECT,
    TRANSIENT_ERRORS,
    error_message,
)
from ewelink_nodes.cloud.session import EwelinkSession
from ewelink_nodes.config import Settings
from ewelink_nodes.credentials import EwelinkCredentials
from ewelink_nodes.exceptions import (
    AuthenticationException,
    CloudApiException,
    ConfigurationException,
    TransientException,
)

logger = logging.getLogger(__name__)

NONCE_ALPHABET = string.ascii_lowercase + string.digits


def make_nonce(length: int = 8) -> str:
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(length))


def make_authorization_sign(app_secret: str, body: bytes) -> str:
    digest = hmac.new(app_secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


class EwelinkCloudClient:
    """Talks to the eWeLink cloud: login, then device reads via EwelinkSession.

    One client (and one httpx connection pool) is shared by every session it
    creates.
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.request_timeout)
        return self._http_client

    async def close(self):
        """Clean up resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _require_app_credentials(self) -> tuple[str, str]:
        if not self.settings.app_id or not self.settings.app_secret:
            raise ConfigurationException(
                "eWeLink app_id and app_secret must be configured "
                "(EWELINK_NODES_APP_ID / EWELINK_NODES_APP_SECRET)"
            )
        return self.settings.app_id, self.settings.app_secret

    async def request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Raises:
            TransientException: transport failure or HTTP 5xx
            CloudApiException: any other HTTP error or a non-JSON body
        """
        client = await self._get_http_client()
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status >= 500:
                raise TransientException(f"eWeLink cloud unavailable ({status}): {url}") from e
            raise CloudApiException(f"eWeLink cloud request failed ({status}): {url}", code=status) from e
        except httpx.TransportError as e:
            raise TransientException(f"eWeLink cloud unreachable: {e}") from e

        try:
            data = response.json()
        except JSONDecodeError as e:
            raise CloudApiException(f"Invalid JSON response from eWeLink cloud: {response.text}") from e

        if not isinstance(data, dict):
            raise CloudApiException(f"Unexpected response from eWeLink cloud: {data}")
        return data

    async def _login(self, credentials: EwelinkCredentials, region: str) -> Dict[str, Any]:
        app_id, app_secret = self._require_app_credentials()

        payload: Dict[str, Any] = {"appid": app_id}
        if credentials.email:
            payload["email"] = credentials.email
        else:
            payload["phoneNumber"] = credentials.phone_number
        payload.update(
            {
                "password": credentials.password,
                "ts": int(time.time()),
                "version": self.settings.api_version,
                "nonce": make_nonce(),
            }
        )

        # the signature covers the exact bytes sent
        body = json.dumps(payload).encode()
        headers = {
            "Authorization": f"Sign {make_authorization_sign(app_secret, body)}",
            "Content-Type": "application/json",
        }
        url = f"{self.settings.api_url(region)}/user/login"
        return await self.request("POST", url, content=body, headers=headers)

    async def connect(self, credentials: EwelinkCredentials) -> EwelinkSession:
        """Authenticate against the eWeLink cloud.

        Args:
            credentials: The account to log in with

        Returns:
            An authenticated EwelinkSession

        Raises:
            AuthenticationException: If the cloud rejects the credentials
            TransientException: If the cloud cannot be reached
        """
        region = credentials.region or self.settings.api_region
        logger.info(f"Logging in to eWeLink cloud as {credentials.account} (region {region})")

        data = await self._login(credentials, region)

        code = data.get("error")
        if code == REGION_REDIRECT and data.get("region"):
            region = data["region"]
            logger.info(f"Account {credentials.account} lives in region {region}, retrying login")
            data = await self._login(credentials, region)
            code = data.get("error")

        if code:
            message = error_message(code, data.get("msg"))
            if code in AUTHENTICATION_ERRORS:
                raise AuthenticationException(
                    f"Authentication failed for {credentials.account}: {message}", code=code
                )
            if code in TRANSIENT_ERRORS:
                raise TransientException(f"Login for {credentials.account} failed: {message}")
            raise CloudApiException(f"Login for {credentials.account} failed: {message}", code=code)

        try:
            access_token = data["at"]
            api_key = data["user"]["apikey"]
        except (KeyError, TypeError) as e:
            raise CloudApiException(f"Invalid login response from eWeLink cloud: {data}") from e

        region = data.get("region", region)
        logger.info(f"Logged in to eWeLink cloud as {credentials.account} (region {region})")
        return EwelinkSession(
            client=self,
            access_token=access_token,
            api_key=api_key,
            region=region,
        )

    def device_params(self) -> Dict[str, Any]:
        """Query parameters every device request carries."""
        app_id, _ = self._require_app_credentials()
        return {
            "appid": app_id,
            "nonce": make_nonce(),
            "ts": int(time.time()),
            "version": self.settings.api_version,
        }
