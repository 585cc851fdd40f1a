"""
Flow runtime.

Composition root for a flow: owns the cloud client and the ConnectionCache,
builds nodes from their definitions, and carries messages along wires. Every
delivery runs as its own task so slow cloud calls never block other messages.
"""

import asyncio
import copy
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import yaml
from pydantic import ValidationError

from ewelink_nodes.cache import ConnectionCache
from ewelink_nodes.cloud import EwelinkCloudClient
from ewelink_nodes.config import Settings
from ewelink_nodes.credentials import CredentialStore, YamlCredentialStore
from ewelink_nodes.exceptions import ConfigurationException
from ewelink_nodes.nodes import NODE_TYPES, FlowNode, NodeStatus
from ewelink_nodes.nodes.base import Message
from ewelink_nodes.nodes.models import FlowNodeDefinition

logger = logging.getLogger(__name__)


@dataclass
class NodeError:
    node_id: str
    text: str
    msg: Optional[Message] = None


def load_flow_file(path: str) -> list[Dict[str, Any]]:
    """Read node definitions from a YAML (or JSON) flow file.

    Accepts either a bare list of nodes or a mapping with a ``nodes`` list.
    """
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationException(f"Flow file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigurationException(f"Invalid YAML in flow file '{path}': {e}")

    if isinstance(data, dict):
        data = data.get("nodes")
    if not isinstance(data, list):
        raise ConfigurationException(f"Flow file '{path}' must contain a list of nodes")
    return data


class FlowRuntime:
    def __init__(
        self,
        settings: Settings,
        credential_store: Optional[CredentialStore] = None,
        client: Optional[EwelinkCloudClient] = None,
        connection_cache: Optional[ConnectionCache] = None,
    ):
        self.settings = settings
        self.credential_store = credential_store or YamlCredentialStore(
            settings.credential_path
        )
        self.client = client or EwelinkCloudClient(settings)
        self.connection_cache = connection_cache or ConnectionCache(
            self.client.connect,
            evict_on_failure=settings.evict_failed_connections,
        )

        self.nodes: Dict[str, FlowNode] = {}
        self.statuses: Dict[str, NodeStatus] = {}
        self.errors: list[NodeError] = []
        self._tasks: set[asyncio.Task] = set()

    async def __aenter__(self) -> "FlowRuntime":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.close()
        return False

    def _build_node(self, raw: Dict[str, Any]) -> FlowNode:
        try:
            definition = FlowNodeDefinition.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationException(f"Invalid node definition {raw}: {e}") from e

        node_class = NODE_TYPES.get(definition.type)
        if node_class is None:
            raise ConfigurationException(
                f"Unknown node type '{definition.type}' for node {definition.id}. "
                f"Available types: {', '.join(sorted(NODE_TYPES))}"
            )

        try:
            typed_definition = node_class.definition_class.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationException(
                f"Invalid {definition.type} node {definition.id}: {e}"
            ) from e

        return node_class.create(typed_definition, self)

    async def load(self, definitions: Iterable[Dict[str, Any]]) -> None:
        """Build and start every node of a flow.

        Raises:
            ConfigurationException: unknown type, duplicate id, invalid
                definition, or a wire/auth reference to a missing node
        """
        nodes: Dict[str, FlowNode] = {}
        for raw in definitions:
            node = self._build_node(raw)
            if node.id in nodes or node.id in self.nodes:
                raise ConfigurationException(f"Duplicate node id '{node.id}'")
            nodes[node.id] = node

        for node in nodes.values():
            for output in node.wires:
                for target_id in output:
                    if target_id not in nodes and target_id not in self.nodes:
                        raise ConfigurationException(
                            f"{node} is wired to unknown node '{target_id}'"
                        )

        # nodes resolve auth references through get_node while starting
        self.nodes.update(nodes)
        started: list[FlowNode] = []
        try:
            for node in nodes.values():
                await node.start()
                started.append(node)
        except Exception:
            for node in started:
                await node.close()
            for node_id in nodes:
                del self.nodes[node_id]
            raise

        logger.info(f"Loaded flow with {len(nodes)} node(s)")

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        return self.nodes.get(node_id)

    def inject(self, node_id: str, msg: Message) -> asyncio.Task:
        """Deliver a message to a node, as if it arrived on one of its inputs."""
        node = self.get_node(node_id)
        if node is None:
            raise ConfigurationException(f"Node not found: {node_id}")

        msg = dict(msg)
        msg.setdefault("_msgid", uuid.uuid4().hex)
        return self._deliver(node, msg)

    def _deliver(self, node: FlowNode, msg: Message) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._run_node(node, msg))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_node(self, node: FlowNode, msg: Message) -> None:
        try:
            await node.receive(msg)
        except Exception as e:
            logger.exception(f"{node} failed handling message {msg.get('_msgid')}")
            self.report_error(node, str(e), msg)

    def route(self, node: FlowNode, msg: Message) -> None:
        targets = node.wires[0] if node.wires else []
        for target_id in targets:
            self._deliver(self.nodes[target_id], copy.deepcopy(msg))

    def report_status(self, node: FlowNode, status: NodeStatus) -> None:
        logger.debug(f"{node} status: {status.fill} {status.text}")
        self.statuses[node.id] = status

    def report_error(self, node: FlowNode, text: str, msg: Optional[Message]) -> None:
        logger.warning(f"{node} error: {text}")
        self.errors.append(NodeError(node_id=node.id, text=text, msg=msg))

    async def drain(self) -> None:
        """Wait until no message is in flight, including ones sent while waiting."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        await self.drain()
        for node in self.nodes.values():
            await node.close()
        await self.connection_cache.close()
        await self.client.close()
        logger.info("Flow runtime closed")

