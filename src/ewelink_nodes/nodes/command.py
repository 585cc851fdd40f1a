"""
Command nodes: read one piece of device state from the eWeLink cloud.

For every inbound message a command node

1. resolves the device id: the configured ``deviceId`` wins, the message
   payload is the fallback;
2. acquires the shared session for its account from the ConnectionCache;
3. issues its single read call with the resolved id, even when that id is
   empty;
4. emits the message with ``payload`` replaced by the result, unless no id was
   resolved, in which case nothing is emitted and nothing is reported.

Failures never escape to the host: they go to the node's error and status
channels and the message is dropped.
"""

import logging
from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from ewelink_nodes.cache import ConnectionCache
from ewelink_nodes.cloud.session import EwelinkSession
from ewelink_nodes.exceptions import ConfigurationException
from ewelink_nodes.nodes.base import FlowNode, Message, NodeHost
from ewelink_nodes.nodes.credentials import CredentialsNode
from ewelink_nodes.nodes.models import CommandNodeDefinition, PowerStateNodeDefinition

if TYPE_CHECKING:
    from ewelink_nodes.runtime import FlowRuntime

logger = logging.getLogger(__name__)


class DeviceIdSource(Enum):
    CONFIGURED = "configured"
    MESSAGE = "message"
    MISSING = "missing"


@dataclass(frozen=True)
class ResolvedDeviceId:
    value: str
    source: DeviceIdSource

    @property
    def is_missing(self) -> bool:
        return self.source is DeviceIdSource.MISSING


def resolve_device_id(configured_id: Optional[str], payload: Any) -> ResolvedDeviceId:
    """Pick the device id for one invocation.

    A non-empty configured id always wins. Otherwise the payload, as a
    string, is used; a missing payload counts as the empty string.
    """
    if configured_id is not None and configured_id != "":
        return ResolvedDeviceId(configured_id, DeviceIdSource.CONFIGURED)

    injected = "" if payload is None else str(payload)
    if injected != "":
        return ResolvedDeviceId(injected, DeviceIdSource.MESSAGE)

    return ResolvedDeviceId("", DeviceIdSource.MISSING)


class InvocationState(Enum):
    IDLE = "idle"
    AWAITING_SESSION = "awaiting_session"
    DISPATCHING = "dispatching"
    EMITTING = "emitting"
    SUPPRESSING = "suppressing"


class Invocation:
    """One message being handled by a command node.

    A node may handle several messages at once, so state is tracked per
    invocation rather than on the node.
    """

    def __init__(self, node: "ReadCommandNode", msg_id: Optional[str]):
        self.node = node
        self.msg_id = msg_id
        self.state = InvocationState.IDLE

    def advance(self, state: InvocationState) -> None:
        logger.debug(f"{self.node} [{self.msg_id}] {self.state.value} -> {state.value}")
        self.state = state


class ReadCommandNode(FlowNode):
    """Base class for nodes that issue one read call per message."""

    definition_class = CommandNodeDefinition
    command: str = ""

    def __init__(
        self,
        definition: CommandNodeDefinition,
        host: NodeHost,
        connection_cache: ConnectionCache,
    ):
        super().__init__(definition, host)
        self.configured_device_id = definition.device_id
        self.auth_id = definition.auth
        self.connection_cache = connection_cache
        self.credentials_node: Optional[CredentialsNode] = None
        self.invocations: list[Invocation] = []

    @classmethod
    def create(cls, definition, runtime: "FlowRuntime") -> "ReadCommandNode":
        return cls(definition, runtime, connection_cache=runtime.connection_cache)

    async def start(self) -> None:
        node = self.host.get_node(self.auth_id)
        if not isinstance(node, CredentialsNode):
            raise ConfigurationException(
                f"{self} auth '{self.auth_id}' is not an {CredentialsNode.type_name} node"
            )
        self.credentials_node = node

    @abstractmethod
    async def execute(self, session: EwelinkSession, device_id: str) -> Dict[str, Any]:
        """Issue the vendor read call for ``device_id``."""
        pass

    async def _acquire_session(self) -> EwelinkSession:
        credentials = await self.credentials_node.get_credentials()
        if not self.connection_cache.is_ready(credentials):
            self.status("yellow", "ring", "connecting")
        session = await self.connection_cache.acquire(credentials)
        self.status("green", "dot", "connected")
        return session

    @property
    def busy(self) -> bool:
        return bool(self.invocations)

    async def on_input(self, msg: Message) -> None:
        invocation = Invocation(node=self, msg_id=msg.get("_msgid"))
        self.invocations.append(invocation)
        try:
            await self._handle(invocation, msg)
        finally:
            invocation.advance(InvocationState.IDLE)
            self.invocations.remove(invocation)

    async def _handle(self, invocation: "Invocation", msg: Message) -> None:
        resolved = resolve_device_id(self.configured_device_id, msg.get("payload"))
        logger.debug(f"{self} device id '{resolved.value}' ({resolved.source.value})")

        invocation.advance(InvocationState.AWAITING_SESSION)
        try:
            session = await self._acquire_session()
        except Exception as e:
            logger.error(f"{self} failed to connect to eWeLink: {e}")
            self.status("red", "ring", "failed to connect")
            self.error(f"Failed to connect to eWeLink: {e}", msg)
            return

        invocation.advance(InvocationState.DISPATCHING)
        try:
            result = await self.execute(session, resolved.value)
        except Exception as e:
            if resolved.is_missing:
                # no id was given, so there is nothing to report
                logger.debug(f"{self} {self.command} without device id failed: {e}")
            else:
                logger.error(f"{self} {self.command} failed for device '{resolved.value}': {e}")
                self.status("red", "ring", "command failed")
                self.error(f"{self.command} failed for device '{resolved.value}': {e}", msg)
            return

        if resolved.is_missing:
            invocation.advance(InvocationState.SUPPRESSING)
            logger.debug(f"{self} no device id configured or supplied, output suppressed")
        else:
            invocation.advance(InvocationState.EMITTING)
            self.send({**msg, "payload": result})


class TemperatureNode(ReadCommandNode):
    type_name = "ewelink-temperature"
    command = "get_device_current_temperature"

    async def execute(self, session: EwelinkSession, device_id: str) -> Dict[str, Any]:
        return await session.get_device_current_temperature(device_id)


class HumidityNode(ReadCommandNode):
    type_name = "ewelink-humidity"
    command = "get_device_current_humidity"

    async def execute(self, session: EwelinkSession, device_id: str) -> Dict[str, Any]:
        return await session.get_device_current_humidity(device_id)


class PowerStateNode(ReadCommandNode):
    type_name = "ewelink-power-state"
    definition_class = PowerStateNodeDefinition
    command = "get_device_power_state"

    def __init__(
        self,
        definition: PowerStateNodeDefinition,
        host: NodeHost,
        connection_cache: ConnectionCache,
    ):
        super().__init__(definition, host, connection_cache)
        self.channel = definition.channel

    async def execute(self, session: EwelinkSession, device_id: str) -> Dict[str, Any]:
        return await session.get_device_power_state(device_id, self.channel)
