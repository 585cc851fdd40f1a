"""Credential models and stores for eWeLink accounts."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path
from typing import Optional

import yaml

from ewelink_nodes.exceptions import CredentialException

logger = getLogger(__name__)


@dataclass(frozen=True)
class EwelinkCredentials:
    """eWeLink account credentials.

    Frozen so that equal credentials hash equally: the connection cache keys
    sessions by value, not by identity.
    """

    password: str = field(repr=False)
    email: Optional[str] = None
    phone_number: Optional[str] = None
    region: Optional[str] = None

    def __post_init__(self):
        if not self.email and not self.phone_number:
            raise CredentialException("eWeLink credentials need an email or a phone number")

    @property
    def account(self) -> str:
        return self.email or self.phone_number or ""


class CredentialStore(ABC):
    @abstractmethod
    async def get_credentials(self, credential_id: str) -> EwelinkCredentials:
        """Retrieve eWeLink credentials by ID.

        :param credential_id: The credential identifier
        :return: EwelinkCredentials
        :raises CredentialException: If credential not found or invalid
        """
        pass

    async def validate(self) -> None:
        """Check the store is usable before any credential is looked up.

        :raises CredentialException: If the store cannot be read
        """
        pass


class YamlCredentialStore(CredentialStore):
    """YAML file-based credential store.

    Reads credentials from a YAML file with the following format:

    ```yaml
    home:
      email: me@example.com
      password: mypassword
      region: eu

    office:
      phone_number: "+15550100"
      password: otherpassword
    ```
    """

    def __init__(self, credential_path: str):
        self.credential_path = credential_path
        self._data: dict | None = None

    def _load_credentials(self) -> dict:
        """Load credentials from YAML file.

        :return: Dictionary of credentials
        :raises CredentialException: If file cannot be read or parsed
        """
        try:
            with open(self.credential_path, "r") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise CredentialException(f"Credential file not found: {self.credential_path}")
        except yaml.YAMLError as e:
            raise CredentialException(
                f"Invalid YAML in credential file '{self.credential_path}': {e}"
            )

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise CredentialException(
                f"Credential file '{self.credential_path}' must contain a YAML dictionary, "
                f"got {type(data).__name__}"
            )
        return data

    async def validate(self) -> None:
        """Validate that the credential file exists and is valid YAML.

        :raises CredentialException: If validation fails
        """
        path = Path(self.credential_path)

        if not path.is_file():
            raise CredentialException(
                f"Credential file not found: {self.credential_path}\n"
                f"Please create this file or update 'credential_file' in your config."
            )

        self._data = self._load_credentials()
        logger.info(
            f"YAML credential store validated: {len(self._data)} credential(s) loaded "
            f"from {self.credential_path}"
        )

    async def get_credentials(self, credential_id: str) -> EwelinkCredentials:
        if self._data is None:
            self._data = self._load_credentials()

        if credential_id not in self._data:
            available = list(self._data.keys())
            raise CredentialException(
                f"Credential '{credential_id}' not found in {self.credential_path}. "
                f"Available credentials: {available}"
            )

        cred_entry = self._data[credential_id]

        if not isinstance(cred_entry, dict):
            raise CredentialException(
                f"Credential '{credential_id}' must be a dictionary with 'email' and 'password' keys, "
                f"got {type(cred_entry).__name__}"
            )

        if "password" not in cred_entry:
            raise CredentialException(
                f"Credential '{credential_id}' is missing required 'password' field"
            )

        return EwelinkCredentials(
            email=cred_entry.get("email"),
            phone_number=cred_entry.get("phone_number"),
            password=str(cred_entry["password"]),
            region=cred_entry.get("region"),
        )
