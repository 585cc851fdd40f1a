from ewelink_nodes.cloud.client import EwelinkCloudClient
from ewelink_nodes.cloud.session import EwelinkSession

__all__ = [
    "EwelinkCloudClient",
    "EwelinkSession",
]
