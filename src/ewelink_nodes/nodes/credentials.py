import logging
from typing import TYPE_CHECKING, Optional

from ewelink_nodes.credentials import CredentialStore, EwelinkCredentials
from ewelink_nodes.exceptions import ConfigurationException
from ewelink_nodes.nodes.base import FlowNode, NodeHost
from ewelink_nodes.nodes.models import CredentialsNodeDefinition, InlineCredential

if TYPE_CHECKING:
    from ewelink_nodes.runtime import FlowRuntime

logger = logging.getLogger(__name__)


class CredentialsNode(FlowNode):
    """Config node holding the eWeLink account that command nodes reference via ``auth``.

    Credentials are either inline in the flow or a reference into the
    credential store.
    """

    type_name = "ewelink-credentials"
    definition_class = CredentialsNodeDefinition

    def __init__(
        self,
        definition: CredentialsNodeDefinition,
        host: NodeHost,
        credential_store: Optional[CredentialStore] = None,
    ):
        super().__init__(definition, host)
        self.source = definition.credentials
        self.credential_store = credential_store
        self._credentials: Optional[EwelinkCredentials] = None

    @classmethod
    def create(cls, definition, runtime: "FlowRuntime") -> "CredentialsNode":
        return cls(definition, runtime, credential_store=runtime.credential_store)

    async def start(self) -> None:
        if isinstance(self.source, InlineCredential):
            self._credentials = EwelinkCredentials(
                email=self.source.email,
                phone_number=self.source.phone_number,
                password=self.source.password,
                region=self.source.region,
            )
        elif self.credential_store is None:
            raise ConfigurationException(
                f"{self} references stored credential '{self.source.credential_id}' "
                f"but no credential store is configured"
            )
        else:
            # a missing or unreadable store fails the flow at load
            await self.credential_store.validate()

    async def get_credentials(self) -> EwelinkCredentials:
        """Resolve the account credentials, looking them up in the store once."""
        if self._credentials is None:
            logger.debug(f"{self} loading stored credential '{self.source.credential_id}'")
            self._credentials = await self.credential_store.get_credentials(
                self.source.credential_id
            )
        return self._credentials
