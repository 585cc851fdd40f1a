"""
Base classes for flow nodes.

A node receives messages (plain dicts carrying at least ``payload``) from the
host, and talks back to the host through three channels: ``send`` for
outbound messages, ``status`` for the badge shown under the node, and
``error`` for diagnostics. The host side of that contract is NodeHost.
"""

import logging
from abc import ABC
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Literal, Optional, Protocol

from ewelink_nodes.nodes.models import FlowNodeDefinition

if TYPE_CHECKING:
    from ewelink_nodes.runtime import FlowRuntime

logger = logging.getLogger(__name__)

Message = Dict[str, Any]


@dataclass(frozen=True)
class NodeStatus:
    fill: Literal["red", "green", "yellow", "blue", "grey"]
    shape: Literal["ring", "dot"]
    text: str


class NodeHost(Protocol):
    def get_node(self, node_id: str) -> Optional["FlowNode"]: ...

    def route(self, node: "FlowNode", msg: Message) -> None: ...

    def report_status(self, node: "FlowNode", status: NodeStatus) -> None: ...

    def report_error(self, node: "FlowNode", text: str, msg: Optional[Message]) -> None: ...


class FlowNode(ABC):
    """
    Base class for nodes.

    Subclasses set ``type_name`` (the flow ``type`` they handle) and
    ``definition_class`` (the pydantic model their definition is parsed with).
    """

    type_name: ClassVar[str]
    definition_class: ClassVar[type[FlowNodeDefinition]] = FlowNodeDefinition

    def __init__(self, definition: FlowNodeDefinition, host: NodeHost):
        self.definition = definition
        self.id = definition.id
        self.name = definition.name
        self.wires = definition.wires
        self.host = host

    @classmethod
    def create(cls, definition: FlowNodeDefinition, runtime: "FlowRuntime") -> "FlowNode":
        """Build the node, pulling any shared collaborators from the runtime."""
        return cls(definition, runtime)

    async def start(self) -> None:
        """Called once every node of the flow exists."""
        pass

    async def close(self) -> None:
        pass

    async def receive(self, msg: Message) -> None:
        await self.on_input(msg)

    async def on_input(self, msg: Message) -> None:
        logger.warning(f"Node {self} does not accept input, message dropped")

    def send(self, msg: Message) -> None:
        self.host.route(self, msg)

    def status(self, fill, shape, text: str) -> None:
        self.host.report_status(self, NodeStatus(fill=fill, shape=shape, text=text))

    def error(self, text: str, msg: Optional[Message] = None) -> None:
        self.host.report_error(self, text, msg)

    def __str__(self) -> str:
        label = f"{self.name} " if self.name else ""
        return f"{label}[{self.type_name}:{self.id}]"


class CaptureNode(FlowNode):
    """Records every message it receives."""

    type_name = "capture"

    def __init__(self, definition: FlowNodeDefinition, host: NodeHost):
        super().__init__(definition, host)
        self.messages: list[Message] = []

    async def on_input(self, msg: Message) -> None:
        logger.debug(f"{self} captured message {msg.get('_msgid')}")
        self.messages.append(msg)
