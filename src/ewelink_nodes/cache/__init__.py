from ewelink_nodes.cache.connection_cache import ConnectionCache, Connector

__all__ = [
    "ConnectionCache",
    "Connector",
]
