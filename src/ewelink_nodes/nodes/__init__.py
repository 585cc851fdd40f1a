from ewelink_nodes.nodes.base import CaptureNode, FlowNode, NodeHost, NodeStatus
from ewelink_nodes.nodes.command import (
    HumidityNode,
    PowerStateNode,
    ReadCommandNode,
    TemperatureNode,
    resolve_device_id,
)
from ewelink_nodes.nodes.credentials import CredentialsNode

NODE_TYPES: dict[str, type[FlowNode]] = {
    node_class.type_name: node_class
    for node_class in (
        CredentialsNode,
        TemperatureNode,
        HumidityNode,
        PowerStateNode,
        CaptureNode,
    )
}

__all__ = [
    "NODE_TYPES",
    "CaptureNode",
    "CredentialsNode",
    "FlowNode",
    "HumidityNode",
    "NodeHost",
    "NodeStatus",
    "PowerStateNode",
    "ReadCommandNode",
    "TemperatureNode",
    "resolve_device_id",
]
