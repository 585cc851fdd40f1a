from ewelink_nodes.credentials.credentials import (
    CredentialStore,
    EwelinkCredentials,
    YamlCredentialStore,
)

__all__ = [
    "CredentialStore",
    "EwelinkCredentials",
    "YamlCredentialStore",
]
