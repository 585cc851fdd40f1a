"""ewelink-nodes exceptions."""

from typing import Optional


class EwelinkException(Exception):
    """Base exception for ewelink-nodes operations."""

    pass


class TransientException(EwelinkException):
    """Failures that may succeed if the same operation is retried later."""

    pass


class PermanentException(EwelinkException):
    """Failures that will not be resolved by retrying the same operation."""

    pass


class ConfigurationException(PermanentException):
    pass


class CredentialException(PermanentException):
    """Credential lookup failures (unknown id, malformed store entry)."""

    pass


class CloudApiException(EwelinkException):
    """The eWeLink cloud answered with an error code."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class AuthenticationException(CloudApiException, PermanentException):
    """Login rejected by the eWeLink cloud.

    This includes:
    - Wrong account or password
    - Inactivated email
    - Invalid app id / app secret signature

    These indicate a configuration problem that won't be resolved by
    retrying with the same credentials.
    """

    pass


class CommandException(CloudApiException):
    """A device read call was rejected."""

    pass
